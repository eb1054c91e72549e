import pytest

from conftest import headers_for
from models import Expense, ExpenseShare, Notification


@pytest.fixture
def friends(test_user, make_user, make_friends):
    """Bob and Carol, both friends of the test user."""
    bob = make_user("bob")
    carol = make_user("carol")
    make_friends(test_user, bob)
    make_friends(test_user, carol)
    return bob, carol

def test_create_equal_expense(client, test_user, auth_headers, friends):
    bob, carol = friends
    response = client.post(
        "/expenses",
        headers=auth_headers,
        json={
            "description": "Dinner",
            "amount": 3000,
            "participants": [{"user_id": test_user.id}, {"user_id": bob.id}, {"user_id": carol.id}]
        }
    )
    assert response.status_code == 201
    data = response.json()
    assert data["payer_id"] == test_user.id
    assert data["split_type"] == "equal"

    shares = {s["user_id"]: s for s in data["shares"]}
    assert shares[test_user.id]["amount"] == 0
    assert shares[test_user.id]["paid"] is True
    assert shares[bob.id]["amount"] == 1000
    assert shares[carol.id]["amount"] == 1000

def test_equal_expense_with_remainder(client, test_user, auth_headers, friends):
    bob, carol = friends
    response = client.post(
        "/expenses",
        headers=auth_headers,
        json={
            "description": "Snacks",
            "amount": 1000,
            "participants": [{"user_id": test_user.id}, {"user_id": bob.id}, {"user_id": carol.id}]
        }
    )
    shares = {s["user_id"]: s["amount"] for s in response.json()["shares"]}
    # Payer keeps 333, the extra cent lands on the lower id non-payer
    assert shares[bob.id] == 334
    assert shares[carol.id] == 333

def test_create_unequal_expense(client, test_user, auth_headers, friends):
    bob, carol = friends
    response = client.post(
        "/expenses",
        headers=auth_headers,
        json={
            "description": "Groceries",
            "amount": 5000,
            "split_type": "unequal",
            "participants": [
                {"user_id": test_user.id, "amount": 1000},
                {"user_id": bob.id, "amount": 1500},
                {"user_id": carol.id, "amount": 2500}
            ]
        }
    )
    assert response.status_code == 201
    shares = {s["user_id"]: s["amount"] for s in response.json()["shares"]}
    assert shares == {test_user.id: 0, bob.id: 1500, carol.id: 2500}

def test_unequal_mismatch_leaves_ledger_untouched(client, db_session, test_user, auth_headers, friends):
    bob, _ = friends
    response = client.post(
        "/expenses",
        headers=auth_headers,
        json={
            "description": "Groceries",
            "amount": 5000,
            "split_type": "unequal",
            "participants": [{"user_id": test_user.id, "amount": 1000}, {"user_id": bob.id, "amount": 1000}]
        }
    )
    assert response.status_code == 400
    assert db_session.query(Expense).count() == 0
    assert db_session.query(ExpenseShare).count() == 0
    assert db_session.query(Notification).count() == 0

def test_create_percentage_expense(client, test_user, auth_headers, friends):
    bob, _ = friends
    response = client.post(
        "/expenses",
        headers=auth_headers,
        json={
            "description": "Rent",
            "amount": 100000,
            "split_type": "percentage",
            "participants": [
                {"user_id": test_user.id, "percentage": 60},
                {"user_id": bob.id, "percentage": 40}
            ]
        }
    )
    assert response.status_code == 201
    shares = {s["user_id"]: s for s in response.json()["shares"]}
    assert shares[bob.id]["amount"] == 40000
    assert shares[bob.id]["percentage"] == 40

def test_percentage_must_total_100(client, test_user, auth_headers, friends):
    bob, _ = friends
    response = client.post(
        "/expenses",
        headers=auth_headers,
        json={
            "description": "Rent",
            "amount": 100000,
            "split_type": "percentage",
            "participants": [
                {"user_id": test_user.id, "percentage": 60},
                {"user_id": bob.id, "percentage": 30}
            ]
        }
    )
    assert response.status_code == 400

def test_non_positive_amount_rejected(client, test_user, auth_headers, friends):
    bob, _ = friends
    response = client.post(
        "/expenses",
        headers=auth_headers,
        json={"description": "Nothing", "amount": 0, "participants": [{"user_id": bob.id}]}
    )
    assert response.status_code == 422

def test_duplicate_participant_rejected(client, test_user, auth_headers, friends):
    bob, _ = friends
    response = client.post(
        "/expenses",
        headers=auth_headers,
        json={"description": "Taxi", "amount": 1000, "participants": [{"user_id": bob.id}, {"user_id": bob.id}]}
    )
    assert response.status_code == 400

def test_non_friend_participant_rejected(client, db_session, test_user, auth_headers, make_user):
    stranger = make_user("stranger")
    response = client.post(
        "/expenses",
        headers=auth_headers,
        json={
            "description": "Coffee",
            "amount": 800,
            "participants": [{"user_id": test_user.id}, {"user_id": stranger.id}]
        }
    )
    assert response.status_code == 400
    assert "not a friend" in response.json()["detail"]
    assert db_session.query(Expense).count() == 0

def test_unknown_participant_not_found(client, test_user, auth_headers):
    response = client.post(
        "/expenses",
        headers=auth_headers,
        json={"description": "Coffee", "amount": 800, "participants": [{"user_id": 9999}]}
    )
    assert response.status_code == 404

def test_outsider_cannot_record_expense_for_others(client, test_user, auth_headers, make_user, make_friends):
    bob = make_user("bob")
    carol = make_user("carol")
    make_friends(bob, carol)

    response = client.post(
        "/expenses",
        headers=auth_headers,
        json={
            "description": "Not mine",
            "amount": 1000,
            "payer_id": bob.id,
            "participants": [{"user_id": bob.id}, {"user_id": carol.id}]
        }
    )
    assert response.status_code == 403

def test_participants_notified_with_their_share(client, db_session, test_user, auth_headers, friends):
    bob, carol = friends
    response = client.post(
        "/expenses",
        headers=auth_headers,
        json={
            "description": "Concert",
            "amount": 9000,
            "split_type": "unequal",
            "participants": [
                {"user_id": test_user.id, "amount": 3000},
                {"user_id": bob.id, "amount": 2000},
                {"user_id": carol.id, "amount": 4000}
            ]
        }
    )
    expense_id = response.json()["id"]

    notifications = db_session.query(Notification).filter(Notification.type == "expense_added").all()
    by_user = {n.user_id: n for n in notifications}
    # The payer is not notified about their own expense
    assert set(by_user) == {bob.id, carol.id}
    assert by_user[bob.id].data == {"actor_id": test_user.id, "expense_id": expense_id, "amount": 2000}
    assert by_user[carol.id].data["amount"] == 4000
    assert "$90.00" in by_user[bob.id].message

def test_read_expenses(client, test_user, auth_headers, friends):
    bob, carol = friends
    client.post(
        "/expenses",
        headers=auth_headers,
        json={"description": "Breakfast", "amount": 1200, "participants": [{"user_id": bob.id}]}
    )
    client.post(
        "/expenses",
        headers=headers_for(bob),
        json={"description": "Lunch", "amount": 2400, "participants": [{"user_id": test_user.id}]}
    )

    response = client.get("/expenses", headers=auth_headers)
    assert response.status_code == 200
    data = response.json()
    assert {e["description"] for e in data} == {"Breakfast", "Lunch"}
    lunch = next(e for e in data if e["description"] == "Lunch")
    assert lunch["paid_by"]["id"] == bob.id
    assert {s["display_name"] for s in lunch["shares"]} == {"Bob", "Test User"}

    # Carol was not involved in either
    assert client.get("/expenses", headers=headers_for(carol)).json() == []

def test_get_expense_access(client, test_user, auth_headers, friends):
    bob, carol = friends
    expense_id = client.post(
        "/expenses",
        headers=auth_headers,
        json={"description": "Breakfast", "amount": 1200, "participants": [{"user_id": bob.id}]}
    ).json()["id"]

    assert client.get(f"/expenses/{expense_id}", headers=headers_for(bob)).status_code == 200
    assert client.get(f"/expenses/{expense_id}", headers=headers_for(carol)).status_code == 403
    assert client.get("/expenses/9999", headers=auth_headers).status_code == 404

def test_group_expense_defaults_to_all_members(client, test_user, auth_headers, make_user):
    bob = make_user("bob")
    carol = make_user("carol")
    group_id = client.post(
        "/groups",
        headers=auth_headers,
        json={"name": "Trip", "type": "trip", "member_ids": [bob.id, carol.id]}
    ).json()["id"]

    response = client.post(
        "/expenses",
        headers=auth_headers,
        json={"description": "Hotel", "amount": 9000, "group_id": group_id}
    )
    assert response.status_code == 201
    shares = {s["user_id"]: s["amount"] for s in response.json()["shares"]}
    assert shares == {test_user.id: 0, bob.id: 3000, carol.id: 3000}

def test_group_expense_rejects_non_members(client, test_user, auth_headers, make_user, make_friends):
    bob = make_user("bob")
    outsider = make_user("outsider")
    make_friends(test_user, outsider)
    group_id = client.post(
        "/groups",
        headers=auth_headers,
        json={"name": "Home", "member_ids": [bob.id]}
    ).json()["id"]

    response = client.post(
        "/expenses",
        headers=auth_headers,
        json={"description": "Rent", "amount": 9000, "group_id": group_id, "participants": [{"user_id": outsider.id}]}
    )
    assert response.status_code == 400

    # A non-member cannot add expenses to the group at all
    response = client.post(
        "/expenses",
        headers=headers_for(outsider),
        json={"description": "Rent", "amount": 9000, "group_id": group_id}
    )
    assert response.status_code == 403
