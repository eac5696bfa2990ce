"""Event members and invitations."""

from datetime import timedelta

from sqlalchemy import select

from db.database import EventInvitation, EventMember, utcnow

API = "/api/v1"


def members_url(event_id):
    return f"{API}/events/{event_id}/members"


class TestMembers:
    async def test_list_orders_owner_first(self, client, auth, event, add_member):
        await add_member(event.id, "viewer-1", "VIEWER")
        await add_member(event.id, "admin-1", "ADMIN")

        response = await client.get(members_url(event.id), headers=auth("viewer-1"))

        assert response.status_code == 200
        assert [m["role"] for m in response.json()] == ["OWNER", "ADMIN", "VIEWER"]

    async def test_add_member(self, client, auth, event):
        response = await client.post(members_url(event.id), json={"user_id": "new-user", "role": "EDITOR"},
                                     headers=auth())
        assert response.status_code == 201
        assert response.json()["role"] == "EDITOR"

        dup = await client.post(members_url(event.id), json={"user_id": "new-user"}, headers=auth())
        assert dup.status_code == 409
        assert dup.json()["detail"] == "User is already a member of this event"

    async def test_admin_cannot_grant_admin(self, client, auth, event, add_member):
        await add_member(event.id, "admin-1", "ADMIN")

        response = await client.post(members_url(event.id), json={"user_id": "x", "role": "ADMIN"},
                                     headers=auth("admin-1"))

        assert response.status_code == 403
        assert response.json()["detail"] == "You cannot assign role ADMIN"

    async def test_editor_cannot_manage_members(self, client, auth, event, add_member):
        await add_member(event.id, "editor-1", "EDITOR")

        response = await client.post(members_url(event.id), json={"user_id": "x"}, headers=auth("editor-1"))

        assert response.status_code == 403
        assert response.json()["detail"] == "Only owners and admins can manage members"

    async def test_cannot_remove_last_owner(self, client, auth, event):
        response = await client.delete(f"{members_url(event.id)}/user-owner", headers=auth())
        assert response.status_code == 400
        assert response.json()["detail"] == "Cannot remove the last owner from an event"

    async def test_admin_cannot_remove_admin(self, client, auth, event, add_member):
        await add_member(event.id, "admin-1", "ADMIN")
        await add_member(event.id, "admin-2", "ADMIN")

        response = await client.delete(f"{members_url(event.id)}/admin-2", headers=auth("admin-1"))

        assert response.status_code == 403
        assert response.json()["detail"] == "Admins cannot remove owners or other admins"

    async def test_remove_member(self, client, auth, event, add_member):
        await add_member(event.id, "viewer-1", "VIEWER")

        response = await client.delete(f"{members_url(event.id)}/viewer-1", headers=auth())

        assert response.status_code == 200
        assert response.json() == {"message": "Member removed successfully"}

        missing = await client.delete(f"{members_url(event.id)}/viewer-1", headers=auth())
        assert missing.status_code == 404

    async def test_change_role_owner_only(self, client, auth, event, add_member):
        await add_member(event.id, "admin-1", "ADMIN")
        await add_member(event.id, "viewer-1", "VIEWER")

        denied = await client.patch(f"{members_url(event.id)}/viewer-1/role", json={"role": "EDITOR"},
                                    headers=auth("admin-1"))
        assert denied.status_code == 403
        assert denied.json()["detail"] == "Only event owners can change member roles"

        ok = await client.patch(f"{members_url(event.id)}/viewer-1/role", json={"role": "EDITOR"}, headers=auth())
        assert ok.status_code == 200
        assert ok.json()["role"] == "EDITOR"

    async def test_cannot_demote_last_owner(self, client, auth, event):
        response = await client.patch(f"{members_url(event.id)}/user-owner/role", json={"role": "ADMIN"},
                                      headers=auth())
        assert response.status_code == 400
        assert response.json()["detail"] == "Cannot demote the last owner. Promote another member to owner first."


class TestInvitations:
    async def invite(self, client, auth, event, email="Guest@Example.com", role="EDITOR"):
        response = await client.post(
            f"{API}/events/{event.id}/invitations",
            json={"invitee_email": email, "role": role, "message": "Join us"},
            headers=auth(),
        )
        assert response.status_code == 201
        return response.json()

    async def test_create_lowercases_and_blocks_duplicates(self, client, auth, event):
        inv = await self.invite(client, auth, event)
        assert inv["invitee_email"] == "guest@example.com"
        assert inv["status"] == "PENDING"

        dup = await client.post(
            f"{API}/events/{event.id}/invitations",
            json={"invitee_email": "guest@example.com"},
            headers=auth(),
        )
        assert dup.status_code == 409
        assert dup.json()["detail"] == "An invitation is already pending for this email"

    async def test_admin_cannot_invite_owner(self, client, auth, event, add_member):
        await add_member(event.id, "admin-1", "ADMIN")

        response = await client.post(
            f"{API}/events/{event.id}/invitations",
            json={"invitee_email": "x@example.com", "role": "OWNER"},
            headers=auth("admin-1"),
        )

        assert response.status_code == 403
        assert response.json()["detail"] == (
            "You cannot invite users with role OWNER. Admins can only invite EDITOR or VIEWER roles."
        )

    async def test_pending_and_accept(self, client, auth, event, db):
        inv = await self.invite(client, auth, event)
        guest = auth("guest-1", email="guest@example.com")

        pending = await client.get(f"{API}/invitations/pending", headers=guest)
        assert pending.status_code == 200
        assert [p["id"] for p in pending.json()] == [inv["id"]]
        assert pending.json()[0]["event"]["name"] == "Test Event"

        accepted = await client.put(f"{API}/invitations/{inv['id']}/accept", headers=guest)
        assert accepted.status_code == 200
        assert accepted.json()["message"] == "Invitation accepted successfully"
        assert accepted.json()["event_member"]["role"] == "EDITOR"

        again = await client.put(f"{API}/invitations/{inv['id']}/accept", headers=guest)
        assert again.status_code == 400
        assert again.json()["detail"] == "Invitation has already been accepted"

        member = (
            await db.execute(select(EventMember).where(EventMember.user_id == "guest-1"))
        ).scalar_one()
        assert member.event_id == event.id

    async def test_pending_requires_email(self, client, auth):
        response = await client.get(f"{API}/invitations/pending", headers=auth("no-email"))
        assert response.status_code == 400
        assert response.json()["detail"] == "User email not available"

    async def test_wrong_email_cannot_accept(self, client, auth, event):
        inv = await self.invite(client, auth, event)

        response = await client.put(
            f"{API}/invitations/{inv['id']}/accept",
            headers=auth("intruder", email="intruder@example.com"),
        )

        assert response.status_code == 403
        assert response.json()["detail"] == "This invitation is not for your email address"

    async def test_expired_invitation(self, client, auth, event, db):
        inv = EventInvitation(
            event_id=event.id,
            inviter_id="user-owner",
            invitee_email="late@example.com",
            role="VIEWER",
            status="PENDING",
            expires_at=utcnow() - timedelta(hours=1),
        )
        db.add(inv)
        await db.commit()
        late = auth("late-1", email="late@example.com")

        pending = await client.get(f"{API}/invitations/pending", headers=late)
        assert pending.json() == []

        await db.refresh(inv)
        assert inv.status == "EXPIRED"

    async def test_decline_and_cancel(self, client, auth, event, add_member):
        first = await self.invite(client, auth, event, email="a@example.com")
        second = await self.invite(client, auth, event, email="b@example.com")

        declined = await client.put(f"{API}/invitations/{first['id']}/decline",
                                    headers=auth("a-1", email="a@example.com"))
        assert declined.status_code == 200

        await add_member(event.id, "viewer-1", "VIEWER")
        denied = await client.delete(f"{API}/invitations/{second['id']}", headers=auth("viewer-1"))
        assert denied.status_code == 403
        assert denied.json()["detail"] == "Only event owners and admins can cancel invitations"

        cancelled = await client.delete(f"{API}/invitations/{second['id']}", headers=auth())
        assert cancelled.json() == {"message": "Invitation cancelled successfully"}

        listed = await client.get(f"{API}/events/{event.id}/invitations", params={"status": "DECLINED"},
                                  headers=auth())
        assert [i["id"] for i in listed.json()] == [first["id"]]
