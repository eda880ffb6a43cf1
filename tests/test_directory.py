import pytest

from account_service.errors import NotFound, ValidationFailure


def test_create_and_read(directory):
    account = directory.create("  Alice  ", 25)

    assert account.account_id is not None
    assert account.name == "Alice"
    assert directory.read(account.account_id).balance == 25
    assert directory.my(account.account_id).name == "Alice"


def test_create_defaults_to_zero_balance(directory):
    assert directory.create("Bob").balance == 0


@pytest.mark.parametrize("name", ["", "   ", None, 5, "x" * 256])
def test_create_rejects_bad_name(directory, name):
    with pytest.raises(ValidationFailure):
        directory.create(name)
    assert directory.list() == []


@pytest.mark.parametrize("balance", [-1, 1.5, "10", True, 2**63])
def test_create_rejects_bad_opening_balance(directory, balance):
    with pytest.raises(ValidationFailure):
        directory.create("Alice", balance)


def test_update_changes_name_only(directory, ledger):
    account = directory.create("Alice", 40)
    ledger.top_up(account.account_id, 2)

    updated = directory.update(account.account_id, "Alicia")

    assert updated.name == "Alicia"
    assert directory.read(account.account_id).name == "Alicia"
    assert directory.read(account.account_id).balance == 42


def test_update_validation_and_missing(directory):
    account = directory.create("Alice")
    with pytest.raises(ValidationFailure):
        directory.update(account.account_id, "")
    with pytest.raises(NotFound):
        directory.update(account.account_id + 1, "Ghost")


def test_delete(directory):
    account = directory.create("Alice")

    directory.delete(account.account_id)

    with pytest.raises(NotFound):
        directory.read(account.account_id)
    with pytest.raises(NotFound):
        directory.delete(account.account_id)


def test_list_is_ordered_by_id(directory):
    ids = [directory.create(name).account_id for name in ("C", "A", "B")]
    assert [a.account_id for a in directory.list()] == sorted(ids)
    assert [a.name for a in directory.list()] == ["C", "A", "B"]
