import pytest
from tunelab.utils.registry import Registry
from tunelab.utils.exceptions import RegistryError


@pytest.fixture
def registry():
    reg = Registry("widget")
    reg.register('a', 1)
    reg.register('b', 2)
    return reg


def test_get_and_names_keep_insertion_order(registry):
    assert registry.get('a') == 1
    assert registry.names() == ['a', 'b']
    assert 'b' in registry
    assert len(registry) == 2
    assert list(registry) == ['a', 'b']


def test_unknown_name_lists_available(registry):
    with pytest.raises(RegistryError, match=r"Unknown widget name: c. Available: \['a', 'b'\]"):
        registry.get('c')


def test_duplicate_registration_rejected(registry):
    with pytest.raises(RegistryError, match="already registered"):
        registry.register('a', 3)


def test_empty_name_rejected(registry):
    with pytest.raises(RegistryError):
        registry.register('', 3)


def test_validate_collects_every_problem(registry):
    registry.register('c', 'not a number')

    def check(name, entry):
        return None if isinstance(entry, int) else "not an int"

    with pytest.raises(RegistryError) as exc_info:
        registry.validate(check)
    assert "c: not an int" in str(exc_info.value)


def test_validate_reports_raising_checks(registry):
    def check(name, entry):
        raise ValueError("boom")

    with pytest.raises(RegistryError, match="check raised ValueError: boom"):
        registry.validate(check)


def test_validate_passes_when_all_entries_ok(registry):
    registry.validate(lambda name, entry: None)
