import pytest

from composer.engine.catalog import AssetCatalog
from composer.engine.errors import SchemaViolation, UnknownAssetType
from composer.engine.sdk import AssetCategory, RendererTech


def test_lookup_unknown_returns_none(catalog):
    assert catalog.lookup("nonexistent-type") is None
    assert "nonexistent-type" not in catalog


def test_builtin_definitions_present(catalog):
    for key in ("customer_logo_split", "iphone_sms", "animated_logo", "video", "image",
                "text", "audio", "fade_in", "fade_out"):
        assert key in catalog
    split = catalog.lookup("customer_logo_split")
    assert split.category == AssetCategory.COMPONENT
    assert split.renderer.technology == RendererTech.VECTOR_CANVAS
    assert split.metadata.animation_source == "animations/CustomerLogoSplit.json"
    assert split.property_schema.required_fields() == ["customerLogo"]


def test_defaults_come_from_schema(catalog):
    defaults = catalog.default_properties("customer_logo_split")
    assert defaults["backgroundColor"] == "#184cb4"
    assert defaults["logoScale"] == 1


def test_default_properties_is_a_copy(catalog):
    first = catalog.default_properties("iphone_sms")
    first["messages"].append({"text": "mutated"})
    first["customerName"] = "x"
    second = catalog.default_properties("iphone_sms")
    assert second["messages"] == []
    assert second["customerName"] == "Customer"


def test_validate_missing_and_null_required(catalog):
    with pytest.raises(SchemaViolation) as exc:
        catalog.validate("customer_logo_split", {"backgroundColor": "#fff"})
    assert exc.value.missing_field == "customerLogo"
    with pytest.raises(SchemaViolation):
        catalog.validate("customer_logo_split", {"customerLogo": None})
    catalog.validate("customer_logo_split", {"customerLogo": "data:image/png;base64,AA=="})


def test_validate_is_presence_only(catalog):
    # Out-of-range values are an input-collection concern
    catalog.validate("customer_logo_split", {"customerLogo": "x", "logoScale": 99})


def test_validate_unknown_type(catalog):
    with pytest.raises(UnknownAssetType):
        catalog.validate("nope", {})


def test_by_category_and_group(catalog):
    media = {d.id for d in catalog.by_category("media")}
    assert media == {"video", "image"}
    effects = {d.id for d in catalog.by_category(AssetCategory.EFFECT)}
    assert effects == {"fade_in", "fade_out"}
    assert {d.id for d in catalog.by_group("Transitions")} == {"fade_in", "fade_out"}


def test_duplicate_definitions_rejected():
    raw = {
        "id": "a",
        "name": "A",
        "category": "media",
        "duration": 1,
        "renderer": {"technology": "raster-canvas"},
    }
    catalog = AssetCatalog.from_mapping({"assets": {"a": raw}})
    with pytest.raises(ValueError):
        AssetCatalog([catalog.lookup("a"), catalog.lookup("a")])


def test_schema_property_type_alias(catalog):
    schema = catalog.schema("animated_logo")
    by_id = {p.id: p for p in schema.properties}
    assert by_id["animationType"].semantic_type.value == "select"
    assert [o.value for o in by_id["animationType"].options] == ["fadeIn", "slideInLeft", "scaleIn", "bounceIn"]
