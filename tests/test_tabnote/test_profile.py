"""Unit tests for tabnote.profile.ProfileView."""

import pytest

from tabnote.profile import SUCCESS_MESSAGE, ProfileView
from tabnote.session import SessionContext


@pytest.fixture()
def view(session) -> ProfileView:
    return ProfileView(session)


class TestDisplay:
    def test_fields(self, view):
        assert view.full_name == "Ada Lovelace"
        assert view.display_name == "Ada Lovelace"
        assert view.email == "ada@example.com"
        assert view.avatar == "A"
        assert not view.busy

    async def test_avatar_url_wins(self, view, session):
        await session.update_profile({"avatar_url": "https://cdn.example.com/ada.png"})
        assert view.avatar == "https://cdn.example.com/ada.png"

    async def test_without_profile(self, auth_store, store):
        ctx = SessionContext(auth_store, store)
        await ctx.start()
        view = ProfileView(ctx)
        assert view.full_name == "Not set"
        assert view.display_name == "User"
        assert view.avatar == ""
        ctx.close()


class TestEdit:
    def test_begin_seeds_form(self, view):
        view.begin_edit()
        assert view.editing
        assert view.form == {"full_name": "Ada Lovelace"}

    def test_cancel_discards_changes(self, view):
        view.begin_edit()
        view.set_field("full_name", "Someone Else")
        view.cancel_edit()
        assert not view.editing
        assert view.form == {"full_name": "Ada Lovelace"}

    def test_email_is_not_editable(self, view):
        view.begin_edit()
        with pytest.raises(KeyError):
            view.set_field("email", "x@example.com")

    async def test_submit_success(self, view, store):
        view.begin_edit()
        view.set_field("full_name", "Ada King")
        assert await view.submit()
        assert view.status.text == SUCCESS_MESSAGE
        assert not view.status.is_error
        assert not view.editing
        assert view.full_name == "Ada King"
        row = await store.select_one("profiles", eq={"id": "user-1"})
        assert row["full_name"] == "Ada King"

    async def test_submit_failure_stays_in_edit(self, auth_store, data, user):
        await data.inner.insert("profiles", [{"id": user.id, "full_name": "Ada Lovelace"}])
        ctx = SessionContext(auth_store, data)
        await ctx.start()
        await auth_store.sign_in_as(user)
        view = ProfileView(ctx)
        view.begin_edit()
        view.set_field("full_name", "Ada King")
        data.fail("update", "profiles")

        assert not await view.submit()
        assert view.status.is_error
        assert view.status.text == "update profiles failed"
        assert view.editing
        assert view.full_name == "Ada Lovelace"
        ctx.close()
