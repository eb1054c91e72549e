from datetime import datetime
from pydantic import AliasChoices, BaseModel, EmailStr, Field, TypeAdapter
from typing import Annotated, Literal, Optional, Union

GroupType = Literal["trip", "home", "couple", "other"]
SplitType = Literal["equal", "unequal", "percentage"]

class UserBase(BaseModel):
    username: str = Field(min_length=3)
    email: EmailStr
    display_name: str
    avatar_url: Optional[str] = None

class UserCreate(UserBase):
    password: str = Field(min_length=6)

class User(UserBase):
    id: int

    class Config:
        from_attributes = True

class UserSummary(BaseModel):
    id: int
    display_name: str
    avatar_url: Optional[str] = None

    class Config:
        from_attributes = True

class Token(BaseModel):
    access_token: str
    token_type: str

class TokenData(BaseModel):
    email: Optional[str] = None


# Friends
class FriendRequest(BaseModel):
    email: str

class ManualFriendCreate(BaseModel):
    display_name: str

class Friendship(BaseModel):
    id: int
    user_id: int
    friend_id: int
    status: str

    class Config:
        from_attributes = True

class Friend(BaseModel):
    status: Literal["accepted"] = "accepted"
    id: int
    display_name: str
    email: str
    avatar_url: Optional[str] = None
    balance: int  # Positive means the friend owes you, in cents

class PendingFriend(BaseModel):
    status: Literal["pending"] = "pending"
    id: int  # Friendship id, used to accept or decline
    user_id: int
    display_name: str
    email: str
    avatar_url: Optional[str] = None
    is_pending_received: bool
    is_pending_sent: bool

FriendEntry = Annotated[Union[Friend, PendingFriend], Field(discriminator="status")]


# Groups
class GroupCreate(BaseModel):
    name: str
    type: GroupType = "other"
    member_ids: list[int] = []

class Group(BaseModel):
    id: int
    name: str
    type: str
    creator_id: int
    created_at: datetime

    class Config:
        from_attributes = True

class GroupMemberAdd(BaseModel):
    email: str

class GroupSummary(BaseModel):
    id: int
    name: str
    type: str
    members: list[UserSummary]
    balance: int

class GroupMemberBalance(UserSummary):
    balance: int


# Expenses
class ExpenseParticipant(BaseModel):
    user_id: int
    amount: Optional[int] = Field(default=None, ge=0)  # For unequal splits, in cents
    percentage: Optional[int] = Field(default=None, ge=0, le=100)  # For percentage splits

class ExpenseCreate(BaseModel):
    description: str
    amount: int = Field(gt=0)  # In cents
    date: Optional[datetime] = None
    category: str = "general"
    split_type: SplitType = "equal"
    payer_id: Optional[int] = None  # Defaults to the current user
    group_id: Optional[int] = None  # None for a direct friend expense
    participants: list[ExpenseParticipant] = []

class ExpenseShare(BaseModel):
    user_id: int
    amount: int
    percentage: Optional[int] = None
    paid: bool = False

    class Config:
        from_attributes = True

class ExpenseShareDetail(ExpenseShare):
    display_name: str

class Expense(BaseModel):
    id: int
    description: str
    amount: int
    date: datetime
    payer_id: int
    group_id: Optional[int]
    category: str
    split_type: str
    created_by_id: Optional[int] = None
    created_at: datetime

    class Config:
        from_attributes = True

class ExpenseWithShares(Expense):
    shares: list[ExpenseShare]

class ExpenseDetail(Expense):
    paid_by: UserSummary
    group_name: Optional[str] = None
    shares: list[ExpenseShareDetail]

class GroupDetail(BaseModel):
    id: int
    name: str
    type: str
    created_at: datetime
    members: list[GroupMemberBalance]
    expenses: list[ExpenseDetail]


# Settlements
class SettlementCreate(BaseModel):
    friend_id: int
    group_id: Optional[int] = None
    description: Optional[str] = None

class Settlement(BaseModel):
    id: int
    payer_id: int
    receiver_id: int
    amount: int
    date: datetime
    description: Optional[str] = None
    group_id: Optional[int] = None

    class Config:
        from_attributes = True


# Balances
class FriendBalance(BaseModel):
    id: int
    name: str
    avatar_url: Optional[str] = None
    amount: int  # Positive means the friend owes you, negative means you owe

class GroupBalance(BaseModel):
    id: int
    name: str
    amount: int  # Positive means the group owes you, negative means you owe

class UserBalances(BaseModel):
    friend_balances: list[FriendBalance]
    group_balances: list[GroupBalance]

class BalanceSummary(BaseModel):
    total_balance: int
    you_owe: int
    you_are_owed: int


# Notification payloads, one shape per notification type
class FriendRequestData(BaseModel):
    type: Literal["friend_request"] = "friend_request"
    actor_id: int

class FriendRequestAcceptedData(BaseModel):
    type: Literal["friend_request_accepted"] = "friend_request_accepted"
    actor_id: int

class ExpenseAddedData(BaseModel):
    type: Literal["expense_added"] = "expense_added"
    actor_id: int
    expense_id: int
    amount: int  # The recipient's own share

class SettlementReceivedData(BaseModel):
    type: Literal["settlement_received"] = "settlement_received"
    actor_id: int
    settlement_id: int
    amount: int

class PaymentReminderData(BaseModel):
    type: Literal["payment_reminder"] = "payment_reminder"
    actor_id: int
    amount: int

class GroupAddedData(BaseModel):
    type: Literal["group_added"] = "group_added"
    actor_id: int
    group_id: int

NotificationPayload = Annotated[
    Union[
        FriendRequestData,
        FriendRequestAcceptedData,
        ExpenseAddedData,
        SettlementReceivedData,
        PaymentReminderData,
        GroupAddedData,
    ],
    Field(discriminator="type"),
]
notification_payload_adapter = TypeAdapter(NotificationPayload)

class Notification(BaseModel):
    id: int
    user_id: int
    type: str
    message: str
    read: bool
    data: Optional[dict] = None
    created_at: datetime

    class Config:
        from_attributes = True

class NotificationWithActor(Notification):
    actor: Optional[UserSummary] = None


# Activity feed
class ExpenseActivity(BaseModel):
    type: Literal["expense_added"] = "expense_added"
    id: int
    title: str
    description: str
    amount: int  # Your share, 0 if you paid
    created_at: datetime
    group_name: Optional[str] = None
    user: UserSummary

class SettlementActivity(BaseModel):
    type: Literal["payment_made"] = "payment_made"
    id: str
    title: str
    description: str
    amount: int
    created_at: datetime
    user: UserSummary

Activity = Annotated[Union[ExpenseActivity, SettlementActivity], Field(discriminator="type")]

class Dashboard(BaseModel):
    summary: BalanceSummary
    activities: list[Activity]
    friend_balances: list[FriendBalance]
    group_balances: list[GroupBalance]


# Real-time channel messages sent by clients
class AuthMessage(BaseModel):
    type: Literal["auth"]
    user_id: int = Field(validation_alias=AliasChoices("userId", "user_id"))
    token: Optional[str] = None

class UnsubscribeMessage(BaseModel):
    type: Literal["unsubscribe"]

ClientMessage = Annotated[Union[AuthMessage, UnsubscribeMessage], Field(discriminator="type")]
client_message_adapter = TypeAdapter(ClientMessage)
