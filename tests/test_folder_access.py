from uuid import uuid4

import pytest

from app.core.errors import FolderHierarchyIntegrityError, NotFoundError
from app.core.permissions import FolderPermissionType, PermissionCode
from app.services import folder_access
from app.services.folder_access import Decision, evaluate_path
from conftest import make_folder, make_principal


def test_evaluate_path_stops_at_inheritance_boundary():
    root = make_folder("Root")
    child = make_folder("Child", parent=root, inherit_permissions=False)
    grants = {root.id: [FolderPermissionType.MANAGE]}

    assert evaluate_path([root], grants, "read") is Decision.ALLOWED
    assert evaluate_path([child, root], grants, "read") is Decision.DENIED


def test_evaluate_path_denies_at_root_without_grants():
    root = make_folder("Root")
    assert evaluate_path([root], {}, "read") is Decision.DENIED


def test_evaluate_path_truncated_chain_is_an_integrity_error():
    root = make_folder("Root")
    child = make_folder("Child", parent=root)
    with pytest.raises(FolderHierarchyIntegrityError):
        evaluate_path([child], {}, "read")


def test_manage_implies_every_level():
    for level in FolderPermissionType:
        assert FolderPermissionType.MANAGE.satisfies(level)
    assert not FolderPermissionType.WRITE.satisfies(FolderPermissionType.DELETE)
    assert FolderPermissionType.DELETE.satisfies("write")


@pytest.mark.asyncio
async def test_inheritance_boundary(world):
    department_id = uuid4()
    root = world.folder("R")
    cut = world.folder("C", parent=root, inherit_permissions=False)
    grandchild = world.folder("G", parent=cut)
    world.grant(root, "read", department_id=department_id)
    world.principal = make_principal(department_id=department_id)

    assert await folder_access.resolve(world.db, world.principal, root.id, "read") is Decision.ALLOWED
    assert await folder_access.resolve(world.db, world.principal, cut.id, "read") is Decision.DENIED
    assert await folder_access.resolve(world.db, world.principal, grandchild.id, "read") is Decision.DENIED


@pytest.mark.asyncio
async def test_user_and_department_entries_union_at_one_level(world):
    department_id = uuid4()
    user_id = uuid4()
    folder = world.folder("F")
    world.grant(folder, "read", department_id=department_id)
    world.grant(folder, "write", user_id=user_id)
    world.principal = make_principal(user_id=user_id, department_id=department_id)

    decision = await folder_access.resolve(world.db, world.principal, folder.id, FolderPermissionType.WRITE)

    assert decision is Decision.ALLOWED


@pytest.mark.asyncio
async def test_department_grant_alone_does_not_satisfy_higher_level(world):
    department_id = uuid4()
    folder = world.folder("F")
    world.grant(folder, "read", department_id=department_id)
    world.principal = make_principal(department_id=department_id)

    assert await folder_access.resolve(world.db, world.principal, folder.id, "write") is Decision.DENIED


@pytest.mark.asyncio
async def test_root_drafts_q3_scenario(world):
    eng = uuid4()
    root = world.folder("Root")
    drafts = world.folder("Drafts", parent=root)
    q3 = world.folder("Q3", parent=drafts, inherit_permissions=False)
    world.grant(root, "write", department_id=eng)
    world.principal = make_principal(department_id=eng)

    assert await folder_access.resolve(world.db, world.principal, root.id, "write") is Decision.ALLOWED
    assert await folder_access.resolve(world.db, world.principal, drafts.id, "write") is Decision.ALLOWED
    assert await folder_access.resolve(world.db, world.principal, q3.id, "write") is Decision.DENIED


@pytest.mark.asyncio
async def test_inactive_and_foreign_grants_are_ignored(world):
    department_id = uuid4()
    folder = world.folder("F")
    world.grant(folder, "manage", department_id=department_id, is_active=False)
    world.grant(folder, "manage", user_id=uuid4())
    world.principal = make_principal(department_id=department_id)

    assert await folder_access.resolve(world.db, world.principal, folder.id, "read") is Decision.DENIED


@pytest.mark.asyncio
async def test_folder_override_skips_the_walk(fake_db):
    principal = make_principal(permissions=[PermissionCode.MANAGE_FOLDERS])

    decision = await folder_access.resolve(fake_db, principal, uuid4(), "manage")

    assert decision is Decision.ALLOWED
    assert fake_db.executed == []


@pytest.mark.asyncio
async def test_resolve_unknown_folder_is_not_found(world):
    world.principal = make_principal()
    with pytest.raises(NotFoundError):
        await folder_access.resolve(world.db, world.principal, uuid4(), "read")


@pytest.mark.asyncio
async def test_resolve_inactive_folder_is_not_found(world):
    folder = world.folder("Old", is_active=False)
    world.principal = make_principal()
    with pytest.raises(NotFoundError):
        await folder_access.resolve(world.db, world.principal, folder.id, "read")


@pytest.mark.asyncio
async def test_accessible_folders_filters_by_walk(world):
    department_id = uuid4()
    shared = world.folder("Shared")
    reports = world.folder("Reports", parent=shared)
    private = world.folder("Private", parent=shared, inherit_permissions=False)
    world.folder("Other")
    world.folder("Archived", parent=shared, is_active=False)
    world.grant(shared, "read", department_id=department_id)
    world.principal = make_principal(department_id=department_id)

    folders = await folder_access.get_user_accessible_folders(world.db, world.principal, "read")

    assert [f.name for f in folders] == ["Reports", "Shared"]
    assert private not in folders
    assert reports in folders


@pytest.mark.asyncio
async def test_accessible_folders_walks_through_inactive_parents(world):
    department_id = uuid4()
    archived = world.folder("Archived", is_active=False)
    live = world.folder("Live", parent=archived)
    world.grant(archived, "read", department_id=department_id)
    world.principal = make_principal(department_id=department_id)

    folders = await folder_access.get_user_accessible_folders(world.db, world.principal)

    assert folders == [live]


@pytest.mark.asyncio
async def test_accessible_folders_for_folder_admin_lists_every_active_folder(world):
    world.folder("B")
    world.folder("A")
    world.folder("Gone", is_active=False)
    world.principal = make_principal(permissions=[PermissionCode.MANAGE_FOLDERS])

    folders = await folder_access.get_user_accessible_folders(world.db, world.principal, "manage")

    assert [f.name for f in folders] == ["A", "B"]


@pytest.mark.asyncio
async def test_check_folder_access_creator_and_public_shortcuts(world):
    principal = make_principal()
    world.principal = principal
    own = world.folder("Mine", created_by_user_id=principal.user_id)
    public = world.folder("Handbook", access_level="public")

    assert await folder_access.check_folder_access(world.db, principal, own, "manage")
    assert await folder_access.check_folder_access(world.db, principal, public, "read")
    assert not await folder_access.check_folder_access(world.db, principal, public, "write")


@pytest.mark.asyncio
async def test_filter_accessible_keeps_order_and_applies_shortcuts(world):
    principal = make_principal()
    world.principal = principal
    company = world.folder("Company")
    hr = world.folder("HR", parent=company, inherit_permissions=False)
    finance = world.folder("Finance", parent=company)
    handbook = world.folder("Handbook", parent=hr, access_level="public", inherit_permissions=False)
    mine = world.folder("Mine", parent=hr, created_by_user_id=principal.user_id)
    world.grant(company, "read", user_id=principal.user_id)

    candidates = [mine, hr, handbook, finance]

    assert await folder_access.filter_accessible(world.db, principal, candidates) == [mine, handbook, finance]
    assert await folder_access.filter_accessible(world.db, principal, candidates, "write") == [mine]


@pytest.mark.asyncio
async def test_filter_accessible_for_folder_admin_keeps_everything(fake_db):
    admin = make_principal(permissions=[PermissionCode.MANAGE_FOLDERS])
    hidden = make_folder("Hidden")

    assert await folder_access.filter_accessible(fake_db, admin, [hidden]) == [hidden]
    assert fake_db.executed == []
