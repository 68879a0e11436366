import structlog
from pymongo.asynchronous.client_session import AsyncClientSession

from spacenote_keys.core.core import Service
from spacenote_keys.core.modules.field.references import count_user_defaults
from spacenote_keys.core.modules.integrity.models import EntityKind, ReferencingKind
from spacenote_keys.errors import RestrictedError

logger = structlog.get_logger(__name__)

# Natural key of the entity being deleted: a username or slug, or (space_slug, number)
EntityKey = str | tuple[str, int]


class IntegrityService(Service):
    """Restrict policy checked before every delete.

    | deleting   | restricted by                                   | cascades to                        |
    |------------|-------------------------------------------------|------------------------------------|
    | user       | memberships, authored notes and attachments,    | sessions                           |
    |            | user field values and user field defaults       |                                    |
    | space      | -                                               | memberships, notes, attachments    |
    | note       | -                                               | -                                  |
    | attachment | attachment/image field values in its space      | -                                  |

    Cascades are performed by the owning service; this service only decides.
    """

    async def ensure_can_delete(self, kind: EntityKind, key: EntityKey, session: AsyncClientSession | None = None) -> None:
        """Raise RestrictedError naming the first blocking relationship and its count."""
        match kind:
            case EntityKind.USER if isinstance(key, str):
                await self._ensure_user_unreferenced(key, session)
            case EntityKind.ATTACHMENT if isinstance(key, tuple):
                await self._ensure_attachment_unreferenced(key[0], key[1], session)
            case EntityKind.SPACE | EntityKind.NOTE:
                return
            case _:
                raise TypeError(f"Invalid key {key!r} for {kind}")

    async def _ensure_user_unreferenced(self, username: str, session: AsyncClientSession | None) -> None:
        services = self.core.services
        entity = f"user '{username}'"

        memberships = await services.space.count_memberships_by_user(username, session)
        self._restrict(entity, ReferencingKind.SPACE_MEMBERSHIP, memberships)
        self._restrict(entity, ReferencingKind.NOTE_AUTHOR, await services.note.count_notes_by_creator(username, session))
        self._restrict(
            entity,
            ReferencingKind.ATTACHMENT_UPLOADER,
            await services.attachment.count_attachments_by_uploader(username, session),
        )

        spaces = await services.space.get_all_spaces(session=session)
        field_refs = 0
        default_refs = 0
        for space in spaces:
            field_refs += await services.note.count_user_references(space, username, session)
            default_refs += count_user_defaults(space, username)
        self._restrict(entity, ReferencingKind.USER_FIELD, field_refs)
        self._restrict(entity, ReferencingKind.USER_FIELD_DEFAULT, default_refs)

    async def _ensure_attachment_unreferenced(self, space_slug: str, number: int, session: AsyncClientSession | None) -> None:
        space = await self.core.services.space.get_space(space_slug, session=session)
        count = await self.core.services.note.count_attachment_references(space, number, session)
        self._restrict(f"attachment {number} in space '{space_slug}'", ReferencingKind.ATTACHMENT_FIELD, count)

    def _restrict(self, entity: str, referencing_kind: ReferencingKind, count: int) -> None:
        if count > 0:
            logger.debug("delete_restricted", entity=entity, referencing_kind=referencing_kind, count=count)
            raise RestrictedError(entity, referencing_kind, count)
