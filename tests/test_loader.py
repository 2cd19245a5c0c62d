import pytest

from toolchainkit.loader import TemplateRenderError, Variables, load_objects, render_template

HOST_NS = "toolchain-host-operator"

SA = """apiVersion: v1
kind: ServiceAccount
metadata:
  name: toolchaincluster-host
  namespace: {{ .Namespace }}
"""

ROLE = """---
apiVersion: rbac.authorization.k8s.io/v1
kind: Role
metadata:
  name: toolchaincluster-host
  namespace: {{.Namespace}}
rules:
- apiGroups:
  - toolchain.dev.openshift.com
  resources:
  - "*"
  verbs:
  - "*"
---
"""

ROLE_BINDING = """apiVersion: rbac.authorization.k8s.io/v1
kind: RoleBinding
metadata:
  name: toolchaincluster-host
  namespace: {{ .Namespace }}
roleRef:
  apiGroup: rbac.authorization.k8s.io
  kind: Role
  name: toolchaincluster-host
subjects:
- kind: ServiceAccount
  name: toolchaincluster-host
"""

CLUSTER_ROLE = """apiVersion: rbac.authorization.k8s.io/v1
kind: ClusterRole
metadata:
  name: member-toolchaincluster-cr
rules:
- apiGroups:
  - authentication.k8s.io
  resources:
  - tokenreviews
  verbs:
  - create
"""


@pytest.fixture
def tree(tmp_path):
    host = tmp_path / "host"
    member = tmp_path / "member"
    host.mkdir()
    member.mkdir()
    (host / "1-sa.yaml").write_text(SA)
    (host / "2-role.yaml").write_text(ROLE)
    (host / "3-rolebinding.yaml").write_text(ROLE_BINDING)
    (member / "clusterrole.yaml").write_text(CLUSTER_ROLE)
    return tmp_path


def test_loads_objects_recursively(tree):
    all_objects = load_objects(tree, Variables(namespace=HOST_NS))
    host_objects = load_objects(tree / "host", Variables(namespace=HOST_NS))
    member_objects = load_objects(tree / "member", None)
    assert len(all_objects) == 4
    assert len(host_objects) == 3
    assert len(member_objects) == 1

    sa, role, binding, cluster_role = all_objects
    assert sa["kind"] == "ServiceAccount"
    assert sa["metadata"] == {"name": "toolchaincluster-host", "namespace": HOST_NS}
    assert role["metadata"]["namespace"] == HOST_NS
    assert role["rules"] == [
        {"apiGroups": ["toolchain.dev.openshift.com"], "resources": ["*"], "verbs": ["*"]}
    ]
    assert binding["metadata"]["name"] == "toolchaincluster-host"
    assert binding["metadata"]["namespace"] == HOST_NS
    assert binding["roleRef"] == {
        "apiGroup": "rbac.authorization.k8s.io",
        "kind": "Role",
        "name": "toolchaincluster-host",
    }
    assert binding["subjects"] == [{"kind": "ServiceAccount", "name": "toolchaincluster-host"}]
    assert cluster_role["metadata"]["name"] == "member-toolchaincluster-cr"
    assert cluster_role["rules"] == [
        {"apiGroups": ["authentication.k8s.io"], "resources": ["tokenreviews"], "verbs": ["create"]}
    ]


def test_error_when_variables_not_provided(tree):
    with pytest.raises(TemplateRenderError, match="Namespace"):
        load_objects(tree / "host", None)


def test_skips_empty_and_null_documents(tmp_path):
    (tmp_path / "a.yaml").write_text("---\nnull\n---\n\n---\nkind: ConfigMap\napiVersion: v1\n")
    assert load_objects(tmp_path) == [{"kind": "ConfigMap", "apiVersion": "v1"}]


def test_json_document(tmp_path):
    (tmp_path / "a.json").write_text('{"kind": "Secret", "apiVersion": "v1"}')
    assert load_objects(tmp_path) == [{"kind": "Secret", "apiVersion": "v1"}]


def test_missing_kind_is_an_error(tmp_path):
    (tmp_path / "a.yaml").write_text("apiVersion: v1\nmetadata:\n  name: x\n")
    with pytest.raises(ValueError, match="Kind"):
        load_objects(tmp_path)


def test_non_mapping_document_is_an_error(tmp_path):
    (tmp_path / "a.yaml").write_text("- a\n- b\n")
    with pytest.raises(ValueError, match="not a mapping"):
        load_objects(tmp_path)


def test_render_substitutes_field():
    assert render_template("t", b"ns: {{ .Namespace }}", Variables(namespace="x")) == "ns: x"


def test_render_trim_markers():
    out = render_template("t", "a  {{- .Namespace -}}  b", Variables(namespace="x"))
    assert out == "axb"


def test_render_comment():
    assert render_template("t", "a{{/* note */}}b", None) == "ab"


def test_render_without_actions_accepts_no_variables():
    assert render_template("t", "plain: text\n", None) == "plain: text\n"


def test_render_unclosed_action():
    with pytest.raises(TemplateRenderError, match="unclosed action"):
        render_template("t", "a {{ .Namespace", Variables())


def test_render_unknown_field():
    with pytest.raises(TemplateRenderError, match="can't evaluate field Other"):
        render_template("t", "{{ .Other }}", Variables(namespace="x"))


def test_render_empty_action():
    with pytest.raises(TemplateRenderError, match="missing value"):
        render_template("t", "{{ }}", Variables())