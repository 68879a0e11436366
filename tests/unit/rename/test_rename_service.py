"""Tests for the rename cascade with the store mocked out."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from spacenote_keys.core.modules.rename.models import RenameKind
from spacenote_keys.core.modules.rename.service import RenameService
from spacenote_keys.errors import ConflictError, InvalidIdentifierError, NotFoundError, ValidationError


@pytest.fixture
def session():
    return MagicMock(name="session")


@pytest.fixture
def core(session, reference_space):
    core = MagicMock()

    async def run_transaction(callback):
        return await callback(session)

    core.run_transaction = AsyncMock(side_effect=run_transaction)
    services = core.services
    for name in ("fence", "user", "session", "space", "note", "attachment", "counter"):
        setattr(services, name, AsyncMock())
    services.user.has_username.return_value = False
    services.space.has_slug.return_value = False
    services.space.get_all_spaces.return_value = [reference_space]
    for mock, count in [
        (services.session.rename_user, 2),
        (services.space.rename_user_memberships, 1),
        (services.note.rename_creator, 4),
        (services.attachment.rename_uploader, 0),
        (services.note.rewrite_user_references, 3),
        (services.space.rename_space_memberships, 1),
        (services.counter.rename_space, 2),
        (services.note.rename_space, 2),
        (services.attachment.rename_space, 0),
    ]:
        mock.return_value = count
    return core


@pytest.fixture
def service(core):
    service = RenameService(MagicMock())
    service.set_core(core)
    return service


class TestRenameUser:
    @pytest.mark.asyncio
    async def test_cascade_counts(self, service):
        result = await service.rename(RenameKind.USERNAME, "john", "jane")
        assert result.old_value == "john"
        assert result.new_value == "jane"
        assert result.updated == {
            "sessions": 2,
            "memberships": 1,
            "notes_created": 4,
            "attachments_uploaded": 0,
            "user_fields": 3,
            "field_defaults": 1,
        }

    @pytest.mark.asyncio
    async def test_all_spaces_fenced_and_defaults_rewritten(self, service, core, session):
        await service.rename(RenameKind.USERNAME, "john", "jane")
        core.services.fence.enter_all_spaces.assert_awaited_once_with(session)
        slug, fields, _ = core.services.space.replace_fields.await_args.args
        assert slug == "proj"
        assert [f.default for f in fields if f.id == "reviewer"] == ["jane"]
        core.services.fence.retire_user_fence.assert_awaited_once_with("john", session)

    @pytest.mark.asyncio
    async def test_target_taken(self, service, core):
        core.services.user.has_username.return_value = True
        with pytest.raises(ConflictError):
            await service.rename(RenameKind.USERNAME, "john", "jane")
        core.services.user.rename_user_document.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_source(self, service, core):
        core.services.user.get_user.side_effect = NotFoundError("User 'john' not found")
        with pytest.raises(NotFoundError):
            await service.rename(RenameKind.USERNAME, "john", "jane")

    @pytest.mark.asyncio
    async def test_same_name_conflicts(self, service, core):
        with pytest.raises(ConflictError):
            await service.rename(RenameKind.USERNAME, "john", "john")
        core.services.user.rename_user_document.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_same_name_for_missing_user_is_not_found(self, service, core):
        core.services.user.get_user.side_effect = NotFoundError("User 'ghost' not found")
        with pytest.raises(NotFoundError):
            await service.rename(RenameKind.USERNAME, "ghost", "ghost")

    @pytest.mark.asyncio
    async def test_configured_admin_refused(self, service, core):
        core.config.admin_username = "john"
        with pytest.raises(ValidationError, match="configured admin"):
            await service.rename(RenameKind.USERNAME, "john", "jane")
        core.run_transaction.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_malformed_target_rejected_before_transaction(self, service, core):
        with pytest.raises(InvalidIdentifierError):
            await service.rename(RenameKind.USERNAME, "john", "Jane Doe")
        core.run_transaction.assert_not_awaited()


class TestRenameSpace:
    @pytest.mark.asyncio
    async def test_cascade_keeps_numbers(self, service, core, session):
        result = await service.rename(RenameKind.SPACE_SLUG, "proj", "project")
        assert result.updated == {"memberships": 1, "counters": 2, "notes": 2, "attachments": 0}
        core.services.note.rename_space.assert_awaited_once_with("proj", "project", session)
        core.services.fence.rename_space_fence.assert_awaited_once_with("proj", "project", session)

    @pytest.mark.asyncio
    async def test_target_taken(self, service, core):
        core.services.space.has_slug.return_value = True
        with pytest.raises(ConflictError):
            await service.rename(RenameKind.SPACE_SLUG, "proj", "project")
        core.services.space.rename_space_document.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_same_slug_conflicts(self, service, core):
        with pytest.raises(ConflictError):
            await service.rename(RenameKind.SPACE_SLUG, "proj", "proj")
        core.services.space.rename_space_document.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_same_slug_for_missing_space_is_not_found(self, service, core):
        core.services.space.get_space.side_effect = NotFoundError("Space with slug 'gone' not found")
        with pytest.raises(NotFoundError):
            await service.rename(RenameKind.SPACE_SLUG, "gone", "gone")
