"""
Telegram Chat Session Store
Keyed onboarding state with version-checked transitions.
"""

import logging
from typing import Optional

from django.db import IntegrityError, transaction
from django.utils import timezone

from apps.messaging.models import ChatSession, Language

logger = logging.getLogger(__name__)


class SessionConflict(Exception):
    """Another invocation changed the session between read and write."""


class SessionStore:
    """
    Loads and transitions ChatSession rows.

    Writes go through `_swap`, an UPDATE filtered on the version that was read;
    if it touches no row, the session moved underneath us and SessionConflict
    is raised instead of silently overwriting.
    """

    Step = ChatSession.Step

    def get(self, chat_id) -> Optional[ChatSession]:
        return ChatSession.objects.filter(chat_id=str(chat_id)).first()

    def choose_language(self, chat_id, language: Language) -> ChatSession:
        """Start (or restart) onboarding with a language; never regresses a linked chat."""
        chat_id = str(chat_id)
        session = self.get(chat_id)

        if session is None:
            try:
                with transaction.atomic():
                    session = ChatSession.objects.create(
                        chat_id=chat_id,
                        language=language,
                        step=self.Step.AWAITING_CONTACT,
                        version=1,
                    )
                logger.info(f"Session {chat_id}: start → awaiting_contact ({language.value})")
                return session
            except IntegrityError:
                session = self.get(chat_id)

        step = self._advance(session.step, self.Step.AWAITING_CONTACT)
        return self._swap(session, language=language, step=step)

    def mark_linked(self, session: ChatSession) -> ChatSession:
        return self._swap(session, step=self._advance(session.step, self.Step.READY))

    def set_doctor_chat(self, session: ChatSession, enabled: bool) -> ChatSession:
        if session.doctor_chat == enabled:
            return session
        return self._swap(session, doctor_chat=enabled)

    # ------------------------------------------------------------------

    @staticmethod
    def _advance(current: str, target: str) -> str:
        rank = ChatSession.STEP_RANK
        return target if rank[str(target)] >= rank.get(str(current), 0) else current

    def _swap(self, session: ChatSession, **changes) -> ChatSession:
        new_version = session.version + 1
        updated = (
            ChatSession.objects
            .filter(chat_id=session.chat_id, version=session.version)
            .update(version=new_version, updated_at=timezone.now(), **changes)
        )
        if not updated:
            raise SessionConflict(f"Session {session.chat_id} changed concurrently")

        previous_step = session.step
        for field, value in changes.items():
            setattr(session, field, value)
        session.version = new_version

        if session.step != previous_step:
            logger.info(f"Session {session.chat_id}: {previous_step} → {session.step}")
        return session
