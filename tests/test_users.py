import pytest

from branchboard.services.errors import AuthorizationError, ConflictError, ValidationFailed


def test_seed_branch_manager_once(users, repo):
    first = users.seed_branch_manager("4266", "BM")
    assert first.is_admin
    assert first.roles == ["Counter"]
    assert users.seed_branch_manager("4266", "BM") is None
    assert len(repo.list_users()) == 1


def test_duplicate_pin_conflicts(users, branch_manager):
    with pytest.raises(ConflictError) as exc:
        users.create_user({"initials": "AK", "pin": "4266"})
    assert exc.value.field == "pin"


def test_pin_change_to_taken_pin_conflicts(users, branch_manager):
    other = users.create_user({"initials": "AK", "pin": "1111", "roles": ["Counter"]})
    with pytest.raises(ConflictError):
        users.update_user(other.id, {"pin": "4266"})
    # keeping your own pin is fine
    users.update_user(other.id, {"pin": "1111", "initials": "ak"})
    assert other.initials == "AK"


def test_pin_format_validated(users):
    with pytest.raises(ValidationFailed) as exc:
        users.create_user({"initials": "AK", "pin": "12a4"})
    assert exc.value.field == "pin"


def test_check_pin(users, branch_manager):
    assert users.check_pin({"pin": "4266"}) is False
    assert users.check_pin({"pin": "4266", "exclude_id": branch_manager.id}) is True
    assert users.check_pin({"pin": "9999"}) is True


def test_branch_manager_is_immutable(users, branch_manager):
    with pytest.raises(AuthorizationError):
        users.delete_user(branch_manager.id)
    with pytest.raises(AuthorizationError):
        users.update_user(branch_manager.id, {"is_admin": False})


def test_only_one_branch_manager(users, branch_manager):
    with pytest.raises(AuthorizationError):
        users.create_user({"initials": "XX", "pin": "5555", "is_admin": True})
    other = users.create_user({"initials": "AK", "pin": "1111"})
    with pytest.raises(AuthorizationError):
        users.update_user(other.id, {"is_admin": True})


def test_delete_user(users, repo, branch_manager, notifier):
    other = users.create_user({"initials": "AK", "pin": "1111"})
    other_id = other.id
    users.delete_user(other_id)
    assert repo.get_user(other_id) is None
    assert notifier.events.count("users") == 2


def test_drivers_need_role_and_hours(users, branch_manager):
    users.create_user({"initials": "JS", "pin": "2222", "roles": ["Driver"], "max_daily_hours": 8})
    users.create_user({"initials": "NO", "pin": "3333", "roles": ["Driver"]})
    users.create_user({"initials": "AK", "pin": "1111", "roles": ["Counter"], "max_daily_hours": 8})
    assert [d.initials for d in users.drivers()] == ["JS"]
