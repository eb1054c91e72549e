import pytest

from conftest import headers_for
from errors import NotFoundError
from models import Notification, Settlement
from utils.balances import calculate_group_balances, get_direct_balance, get_group_balance


@pytest.fixture
def trio(test_user, make_user, make_friends):
    """Test user with two friends who are also friends with each other."""
    bob = make_user("bob")
    carol = make_user("carol")
    make_friends(test_user, bob)
    make_friends(test_user, carol)
    make_friends(bob, carol)
    return test_user, bob, carol

def add_expense(client, payer, amount, participants, group_id=None, **extra):
    payload = {
        "description": extra.pop("description", "Expense"),
        "amount": amount,
        "participants": [{"user_id": u.id} for u in participants],
        **extra
    }
    if group_id is not None:
        payload["group_id"] = group_id
    response = client.post("/expenses", headers=headers_for(payer), json=payload)
    assert response.status_code == 201, response.json()
    return response.json()

def friend_amounts(client, user):
    data = client.get("/balances", headers=headers_for(user)).json()
    return {b["id"]: b["amount"] for b in data["friend_balances"]}

def test_equal_expense_balances(client, trio):
    alice, bob, carol = trio
    add_expense(client, alice, 3000, [alice, bob, carol])

    assert friend_amounts(client, alice) == {bob.id: 1000, carol.id: 1000}
    assert friend_amounts(client, bob) == {alice.id: -1000, carol.id: 0}
    assert friend_amounts(client, carol) == {alice.id: -1000, bob.id: 0}

def test_direct_balance_is_antisymmetric(client, db_session, trio):
    alice, bob, carol = trio
    add_expense(client, alice, 3000, [alice, bob, carol])
    add_expense(client, bob, 1001, [alice, bob])
    add_expense(client, carol, 700, [bob, carol])

    for user in trio:
        for other in trio:
            if user.id != other.id:
                assert get_direct_balance(db_session, user.id, other.id) == -get_direct_balance(db_session, other.id, user.id)

def test_direct_balance_unknown_user(db_session, test_user):
    with pytest.raises(NotFoundError):
        get_direct_balance(db_session, test_user.id, 9999)

def test_settle_up_clears_balance(client, db_session, trio):
    alice, bob, _ = trio
    add_expense(client, alice, 3000, [alice, bob])

    response = client.post("/settlements", headers=headers_for(bob), json={"friend_id": alice.id})
    assert response.status_code == 201
    data = response.json()
    assert data["amount"] == 1500
    assert data["payer_id"] == bob.id
    assert data["receiver_id"] == alice.id
    assert data["group_id"] is None

    assert friend_amounts(client, alice)[bob.id] == 0
    assert friend_amounts(client, bob)[alice.id] == 0

    # The receiver is notified
    notification = db_session.query(Notification).filter(
        Notification.user_id == alice.id,
        Notification.type == "settlement_received"
    ).one()
    assert notification.data == {"actor_id": bob.id, "settlement_id": data["id"], "amount": 1500}
    assert "$15.00" in notification.message

def test_cannot_settle_without_debt(client, db_session, trio):
    alice, bob, _ = trio
    add_expense(client, alice, 3000, [alice, bob])

    # Alice is owed, not owing
    response = client.post("/settlements", headers=headers_for(alice), json={"friend_id": bob.id})
    assert response.status_code == 400
    assert response.json()["detail"] == "You don't owe this friend any money"

    client.post("/settlements", headers=headers_for(bob), json={"friend_id": alice.id})
    response = client.post("/settlements", headers=headers_for(bob), json={"friend_id": alice.id})
    assert response.status_code == 400
    assert db_session.query(Settlement).count() == 1

def test_cannot_settle_with_non_friend(client, test_user, auth_headers, make_user):
    stranger = make_user("stranger")
    response = client.post("/settlements", headers=auth_headers, json={"friend_id": stranger.id})
    assert response.status_code == 404

def test_group_balances_sum_to_zero(client, db_session, trio):
    alice, bob, carol = trio
    group_id = client.post(
        "/groups",
        headers=headers_for(alice),
        json={"name": "Cabin", "type": "trip", "member_ids": [bob.id, carol.id]}
    ).json()["id"]

    add_expense(client, alice, 9000, [alice, bob, carol], group_id=group_id)
    add_expense(client, bob, 1000, [alice, bob, carol], group_id=group_id)

    balances = calculate_group_balances(db_session, group_id)
    # Bob's 1000 splits 334/333/333 with the spare cent on Alice
    # Alice: +6000 - 334, Bob: -3000 + 667, Carol: -3000 - 333
    assert balances == {alice.id: 5666, bob.id: -2333, carol.id: -3333}
    assert sum(balances.values()) == 0

    # Group expenses never leak into direct balances
    assert friend_amounts(client, alice) == {bob.id: 0, carol.id: 0}

def test_group_balance_lists_idle_members(db_session, client, test_user, auth_headers, make_user):
    bob = make_user("bob")
    group_id = client.post("/groups", headers=auth_headers, json={"name": "Idle", "member_ids": [bob.id]}).json()["id"]
    assert calculate_group_balances(db_session, group_id) == {test_user.id: 0, bob.id: 0}

def test_group_balance_unknown_group(db_session):
    with pytest.raises(NotFoundError):
        calculate_group_balances(db_session, 9999)

def test_group_settlement(client, db_session, trio):
    alice, bob, carol = trio
    group_id = client.post(
        "/groups",
        headers=headers_for(alice),
        json={"name": "Cabin", "member_ids": [bob.id, carol.id]}
    ).json()["id"]
    add_expense(client, alice, 9000, [alice, bob, carol], group_id=group_id)

    response = client.post(
        "/settlements",
        headers=headers_for(bob),
        json={"friend_id": alice.id, "group_id": group_id}
    )
    assert response.status_code == 201
    assert response.json()["amount"] == 3000

    balances = calculate_group_balances(db_session, group_id)
    assert balances == {alice.id: 3000, bob.id: 0, carol.id: -3000}
    assert sum(balances.values()) == 0

    # Bob no longer owes in the group; Carol cannot settle with Bob who is owed nothing
    response = client.post("/settlements", headers=headers_for(bob), json={"friend_id": alice.id, "group_id": group_id})
    assert response.status_code == 400
    response = client.post("/settlements", headers=headers_for(carol), json={"friend_id": bob.id, "group_id": group_id})
    assert response.status_code == 400

    # Direct balances are untouched by group settlements
    assert friend_amounts(client, bob)[alice.id] == 0

def test_group_settlement_requires_membership(client, trio, make_user):
    alice, bob, _ = trio
    outsider = make_user("outsider")
    group_id = client.post("/groups", headers=headers_for(alice), json={"name": "Cabin", "member_ids": [bob.id]}).json()["id"]

    response = client.post("/settlements", headers=headers_for(outsider), json={"friend_id": alice.id, "group_id": group_id})
    assert response.status_code == 403

def test_balances_include_groups(client, trio):
    alice, bob, carol = trio
    group_id = client.post("/groups", headers=headers_for(alice), json={"name": "Flat", "member_ids": [bob.id]}).json()["id"]
    add_expense(client, alice, 4000, [alice, bob], group_id=group_id)

    data = client.get("/balances", headers=headers_for(bob)).json()
    assert data["group_balances"] == [{"id": group_id, "name": "Flat", "amount": -2000}]

def test_group_member_balances_endpoint(client, trio, make_user):
    alice, bob, _ = trio
    outsider = make_user("outsider")
    group_id = client.post("/groups", headers=headers_for(alice), json={"name": "Flat", "member_ids": [bob.id]}).json()["id"]
    add_expense(client, alice, 4000, [alice, bob], group_id=group_id)

    response = client.get(f"/groups/{group_id}/balances", headers=headers_for(bob))
    assert response.status_code == 200
    balances = {m["id"]: m["balance"] for m in response.json()}
    assert balances == {alice.id: 2000, bob.id: -2000}

    assert client.get(f"/groups/{group_id}/balances", headers=headers_for(outsider)).status_code == 403

def test_list_settlements(client, trio):
    alice, bob, carol = trio
    add_expense(client, alice, 3000, [alice, bob])
    client.post("/settlements", headers=headers_for(bob), json={"friend_id": alice.id, "description": "Venmo"})

    for user in (alice, bob):
        data = client.get("/settlements", headers=headers_for(user)).json()
        assert [s["description"] for s in data] == ["Venmo"]
    assert client.get("/settlements", headers=headers_for(carol)).json() == []

def test_single_group_expense_scenario(client, db_session, trio):
    alice, bob, carol = trio
    group_id = client.post("/groups", headers=headers_for(alice), json={"name": "Dinner", "member_ids": [bob.id, carol.id]}).json()["id"]
    add_expense(client, alice, 9000, [alice, bob, carol], group_id=group_id)

    assert get_group_balance(db_session, alice.id, group_id) == 6000
    assert get_group_balance(db_session, bob.id, group_id) == -3000
    assert get_group_balance(db_session, carol.id, group_id) == -3000
