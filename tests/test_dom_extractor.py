from locatorforge.config import InspectorConfig
from locatorforge.dom_extractor import extract_descriptor
from locatorforge.memory_dom import Document
from locatorforge.models import HierarchyEntry, Rect


def _login_form() -> tuple[Document, dict[str, object]]:
    document = Document()
    form = document.create_element("form", id="login", **{"class": "auth card"})
    label = document.create_element("label", **{"for": "email"})
    label.append("Work email")
    field = document.create_element(
        "input",
        id="email",
        name="email",
        type="email",
        placeholder="you@company.com",
        data_testid="login-email",
        required="",
        **{"class": "form-control input-lg"},
    ).set_rect(10.4, 20.6, 200, 30)
    wrapped_label = document.create_element("label")
    wrapped_label.append("Remember me ")
    checkbox = document.create_element("input", type="checkbox").set_rect(10, 60, 16, 16)
    wrapped_label.append_child(checkbox)
    form.append(label, field, wrapped_label)
    document.body.append_child(form)
    return document, {"form": form, "field": field, "checkbox": checkbox}


def test_extracts_identity_form_and_layout_fields() -> None:
    document, nodes = _login_form()
    nodes["field"].value = "ada@example.com"

    descriptor = extract_descriptor(document, nodes["field"])

    assert descriptor.tag == "input"
    assert descriptor.type == "email"
    assert descriptor.id == "email"
    assert descriptor.name == "email"
    assert descriptor.classes == ("form-control", "input-lg")
    assert descriptor.placeholder == "you@company.com"
    assert descriptor.label == "Work email"
    assert descriptor.value == "ada@example.com"
    assert descriptor.required is True
    assert descriptor.disabled is False
    assert descriptor.tab_index == 0
    assert descriptor.rect == Rect(10, 21, 200, 30)
    assert descriptor.visible is True
    assert descriptor.test_ids["data-testid"] == "login-email"
    assert descriptor.test_ids["data-cy"] == ""
    assert descriptor.xpath == "//*[@id='email']"
    assert descriptor.absolute_xpath == "/html[1]/body[1]/form[1]/input[1]"
    assert descriptor.css_selector == "input#email"


def test_label_falls_back_to_enclosing_label() -> None:
    document, nodes = _login_form()

    descriptor = extract_descriptor(document, nodes["checkbox"])

    assert descriptor.label == "Remember me"
    assert descriptor.css_selector == 'input[type="checkbox"]'


def test_hierarchy_starts_at_node_and_stops_at_body() -> None:
    document, nodes = _login_form()

    descriptor = extract_descriptor(document, nodes["checkbox"])

    assert descriptor.hierarchy == (
        HierarchyEntry(tag="input"),
        HierarchyEntry(tag="label"),
        HierarchyEntry(tag="form", id="login", classes=("auth", "card")),
    )


def test_hierarchy_depth_and_class_limits_follow_config() -> None:
    document = Document()
    parent = document.body
    for depth in range(6):
        child = document.create_element("div", **{"class": f"level{depth} a b c"})
        parent.append_child(child)
        parent = child

    descriptor = extract_descriptor(document, parent, InspectorConfig(hierarchy_depth=2, hierarchy_class_limit=2))

    assert [entry.classes for entry in descriptor.hierarchy] == [("level5", "a"), ("level4", "a")]


def test_text_and_markup_are_truncated() -> None:
    document = Document()
    paragraph = document.create_element("p")
    paragraph.append("x" * 500)
    document.body.append_child(paragraph)

    descriptor = extract_descriptor(document, paragraph, InspectorConfig(text_limit=50, outer_html_limit=20))

    assert len(descriptor.text) == 50
    assert len(descriptor.outer_html) == 20
    assert len(descriptor.inner_html) == 500


def test_hidden_element_is_reported_invisible_with_empty_rect() -> None:
    document = Document()
    menu = document.create_element("ul", style="display: none").set_rect(0, 0, 100, 100)
    document.body.append_child(menu)

    descriptor = extract_descriptor(document, menu)

    assert descriptor.visible is False
    assert descriptor.rect == Rect()
    assert descriptor.tab_index == -1


class _BrokenNode:
    node_type = 1
    tag_name = "div"
    parent = None
    children: list = []

    def attribute_items(self) -> list[tuple[str, str]]:
        return [("id", "shell")]

    def get_attribute(self, name: str) -> str | None:
        return "shell" if name == "id" else None

    @property
    def text_content(self) -> str:
        raise RuntimeError("detached")

    @property
    def inner_text(self) -> str:
        raise RuntimeError("detached")

    @property
    def inner_html(self) -> str:
        raise RuntimeError("detached")

    @property
    def outer_html(self) -> str:
        raise RuntimeError("detached")


def test_unreadable_fields_fall_back_to_defaults() -> None:
    document = Document()

    descriptor = extract_descriptor(document, _BrokenNode())

    assert descriptor.tag == "div"
    assert descriptor.id == "shell"
    assert descriptor.text == ""
    assert descriptor.inner_html == ""
    assert descriptor.rect == Rect()
    assert descriptor.visible is False
    assert descriptor.css_selector == "div#shell"


def test_extracting_an_unchanged_node_twice_is_identical() -> None:
    document, nodes = _login_form()
    nodes["field"].append_child(document.create_text_node("y" * 4000))

    first = extract_descriptor(document, nodes["field"])
    second = extract_descriptor(document, nodes["field"])

    assert first == second
    assert first.to_dict() == second.to_dict()


class _DisposedFormNode(_BrokenNode):
    tag_name = "input"

    def attribute_items(self) -> list[tuple[str, str]]:
        return [("id", "email"), ("type", "email")]

    @property
    def value(self) -> str:
        raise RuntimeError("JSHandle is disposed")

    @property
    def type(self) -> str:
        raise RuntimeError("JSHandle is disposed")

    @property
    def name(self) -> str:
        raise RuntimeError("JSHandle is disposed")

    @property
    def disabled(self) -> bool:
        raise RuntimeError("JSHandle is disposed")

    @property
    def read_only(self) -> bool:
        raise RuntimeError("JSHandle is disposed")

    @property
    def required(self) -> bool:
        raise RuntimeError("JSHandle is disposed")


def test_disposed_form_node_degrades_instead_of_raising() -> None:
    document = Document()

    descriptor = extract_descriptor(document, _DisposedFormNode())

    assert descriptor.tag == "input"
    assert descriptor.id == "email"
    assert descriptor.type == ""
    assert descriptor.name == ""
    assert descriptor.value == ""
    assert descriptor.disabled is False
    assert descriptor.required is False
    assert descriptor.css_selector == 'input#email'


def test_descriptors_are_hashable_values() -> None:
    document, nodes = _login_form()

    first = extract_descriptor(document, nodes["field"])
    second = extract_descriptor(document, nodes["field"])

    assert hash(first) == hash(second)
    assert len({first, second}) == 1
    assert first.attribute("data-testid") == "login-email"
    assert first.attribute("data-cy") == ""
    assert first.to_dict()["attributes"]["placeholder"] == "you@company.com"
