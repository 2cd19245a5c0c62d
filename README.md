# toolchainkit

Building blocks for operators that provision user workspaces from manifest templates. Manifests are handled as plain dictionaries.

## What is in it

### Filtering objects (`toolchainkit.filters`)

`filter_objects(objs, *filters)` returns, in order, the objects that every filter keeps. With no filters, every object is kept. Two filters come with the package. Both look at the object's `kind`:

- `retain_namespaces` keeps objects of kind `Namespace`.
- `retain_all_but_namespaces` keeps all other objects.

### Loading manifests from a directory (`toolchainkit.loader`)

`load_objects(root, variables=None)` walks every file below `root`. Entries are sorted by name within each directory, and subdirectories are walked recursively.

For each file it does three things:

1. It renders the file with `render_template`.
2. It parses the result as one or more YAML or JSON documents.
3. It returns all the objects found, as dictionaries.

Empty and `null` documents are skipped. A document that is not a mapping, or that has no `kind`, raises `ValueError`.

`render_template(name, content, variables)` supports only two kinds of action:

- Field references such as `{{ .Namespace }}`, which take their value from a `Variables(namespace=...)` instance.
- Comments `{{/* ... */}}`.

Trim markers (`{{-` and `-}}`) are honoured. It raises `TemplateRenderError` in four cases:

- `variables` is `None` and a field is referenced.
- The field is unknown.
- An action is unclosed.
- An action is of a kind that is not supported.

### Processing parameterised templates (`toolchainkit.processor`)

`Template.parse(content)` decodes a `Template` (kind `Template`) from YAML or JSON text. It has `objects` and `parameters`, which are a list of `Parameter`.

`Processor().process(template, values, *filters)` works on a copy of the template and leaves the original unchanged. It does the following:

- It sets the given parameter values. Names the template does not declare are ignored.
- It generates values for parameters whose `generate` is `"expression"`, from patterns such as `[a-z0-9]{8}`.
- It substitutes `${NAME}` references in strings and keys. A string that is exactly `${{NAME}}` is replaced by the parsed JSON value of the parameter.
- It removes literal namespaces from objects and adds the template's labels.
- It returns the objects that pass the filters.

A required parameter without a value, or a generator that fails, raises `TemplateProcessingError`.

`get_parameter_by_name(template, name)` returns the named parameter, or `None`.

### Namespace template tiers (`toolchainkit.tierfiles`, `toolchainkit.tiergen`)

`load_templates_by_tiers(metadata, files)` sorts files named `<tier>/<file>.yaml` into one `TierData` per tier. Recognised files are:

- `tier.yaml`
- `cluster.yaml`
- `ns_<type>.yaml`
- `spacerole_<role>.yaml`
- `based_on_tier.yaml`

Each file's revision is looked up in `metadata` under its name without the `.yaml` suffix. A badly formed name, an unknown file, or a tier that mixes `based_on_tier.yaml` with regular templates raises `TemplateLoadError`. `parse_based_on_tier(content)` parses a `based_on_tier.yaml` file into a `BasedOnTier` (its `from_` tier and the `parameters` to override).

`generate_tiers(ensure_object, namespace, metadata, files)` builds a `TierGenerator` and then works in two steps:

1. It passes every `TierTemplate` to `ensure_object(obj, False, tier_name)`. A tier template is named `<tier>-<type>-<revision>`, as given by `new_tier_template_name`.
2. It passes each tier's processed NSTemplateTier object (a dictionary) to `ensure_object(obj, True, tier_name)`.

The callback returns whether the object was created or updated. Any failure, including one raised by the callback, is reported as `TierGenerationError`.

### Usernames (`toolchainkit.usersignup`)

`transform_username(username, forbidden_prefixes, forbidden_suffixes)` turns a user name or e-mail address into a DNS-1123 label of at most `MAX_LENGTH` (20) characters. It adds `crt-` or `-crt` where needed to avoid forbidden prefixes and suffixes. `is_dns1123_label(value)` returns the list of reasons a value is not a valid label; the list is empty when the value is valid.

## What it does not do

This is a library only:

- It has no command-line tool.
- It does not connect to a cluster. Storing generated objects is left to the `ensure_object` callback you supply.

## Installation

```
pip install toolchainkit
```

To run the tests:

```
pip install "toolchainkit[test]"
pytest
```

## Examples

```python
from toolchainkit.usersignup import transform_username

transform_username("john@example.com", ["openshift", "kube"], ["admin"])
# 'john'
transform_username("kube-test-user", ["openshift", "kube"], ["admin"])
# 'crt-kube-test-user'
```

```python
from toolchainkit.filters import filter_objects, retain_namespaces

objs = [
    {"kind": "Namespace", "metadata": {"name": "ns1"}},
    {"kind": "RoleBinding", "metadata": {"name": "rb1"}},
]
filter_objects(objs, retain_namespaces)
# [{'kind': 'Namespace', 'metadata': {'name': 'ns1'}}]
```

```python
from toolchainkit.loader import Variables, load_objects

objects = load_objects("deploy/templates", Variables(namespace="toolchain-host-operator"))
```

```python
from toolchainkit.tiergen import generate_tiers

ensured = []

def ensure_object(obj, can_update, tier_name):
    ensured.append(obj)
    return True

generate_tiers(ensure_object, "toolchain-host-operator", metadata, files)
```

Here `metadata` maps names such as `base/ns_dev` to revisions. `files` maps names such as `base/ns_dev.yaml` to file contents as bytes.