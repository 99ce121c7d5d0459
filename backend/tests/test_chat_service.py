"""
Unit Tests for per-application chat threads.

Usage:
    cd backend && pytest tests/test_chat_service.py -v
"""

import pytest

from conftest import make_user, member_app_answers, run
from portal.exceptions import NotFound, PermissionDenied, ValidationFailed
from portal.services.application_service import ApplicationService
from portal.services.chat_service import ChatService


@pytest.fixture
def application(repo, member):
    return run(ApplicationService.submit_application(repo, member, "member-app", member_app_answers()))


class TestChat:
    """Thread creation, access and closing."""

    def test_no_thread_until_first_message(self, repo, member, application):
        assert run(ChatService.get_chat(repo, member, application.id)) is None

    def test_applicant_starts_thread(self, repo, member, application):
        chat = run(ChatService.send_message(repo, member, application.id, "  Any news?  "))
        assert chat.initiated_by_staff is False
        assert chat.messages[0].text == "Any news?"
        assert chat.messages[0].sender_role == "user"

    def test_staff_reply_marks_thread(self, repo, member, staff, application):
        run(ChatService.send_message(repo, member, application.id, "Hi"))
        chat = run(ChatService.send_message(repo, staff, application.id, "Hello"))
        assert chat.initiated_by_staff is True
        assert [m.sender_id for m in chat.messages] == [member.id, staff.id]

    def test_empty_message(self, repo, member, application):
        with pytest.raises(ValidationFailed):
            run(ChatService.send_message(repo, member, application.id, "   "))

    def test_stranger_cannot_read_or_post(self, repo, application):
        stranger = make_user("user", "Stranger")
        with pytest.raises(NotFound):
            run(ChatService.get_chat(repo, stranger, application.id))
        with pytest.raises(NotFound):
            run(ChatService.send_message(repo, stranger, application.id, "hi"))

    def test_closed_thread_blocks_applicant_only(self, repo, member, staff, application):
        run(ChatService.send_message(repo, staff, application.id, "Please wait"))
        run(ChatService.set_chat_status(repo, staff, application.id, "closed"))
        with pytest.raises(PermissionDenied):
            run(ChatService.send_message(repo, member, application.id, "But why?"))
        chat = run(ChatService.send_message(repo, staff, application.id, "Final note"))
        assert len(chat.messages) == 2

    def test_status_requires_staff(self, repo, member, application):
        run(ChatService.send_message(repo, member, application.id, "Hi"))
        with pytest.raises(PermissionDenied):
            run(ChatService.set_chat_status(repo, member, application.id, "closed"))

    def test_delete_chat(self, repo, member, staff, application):
        run(ChatService.send_message(repo, member, application.id, "Hi"))
        run(ChatService.delete_chat(repo, staff, application.id))
        assert run(ChatService.get_chat(repo, member, application.id)) is None
        with pytest.raises(NotFound):
            run(ChatService.delete_chat(repo, staff, application.id))
