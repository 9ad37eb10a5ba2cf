"""
Group/Member Resolver

Builds the participant choices for a group: the local user first, then
every friend id on the group that still resolves in the friend directory.
Dangling friend ids are skipped.

The balance engine never calls this. Balances use the names snapshotted
on each expense participant, so removing a friend later does not change
how historical expenses are displayed.
"""

from typing import Iterable, Optional

from pydantic import BaseModel

from splitledger.models.expense import Expense, Friend, Group, User


class ParticipantCandidate(BaseModel):
    """Someone who can be put on an expense."""

    user_id: str
    name: str
    is_friend: bool = False


def friend_directory(friends: Iterable[Friend]) -> dict[str, Friend]:
    return {friend.id: friend for friend in friends}


def resolve_participants(
    group: Optional[Group],
    friends: Iterable[Friend],
    local_user: User,
) -> list[ParticipantCandidate]:
    """
    Ordered participant candidates for `group`.

    With no group (a personal expense) only the local user is returned.
    """
    candidates = [
        ParticipantCandidate(user_id=local_user.id, name=local_user.name, is_friend=False)
    ]
    if group is None:
        return candidates

    directory = friend_directory(friends)
    for friend_id in group.friend_ids:
        friend = directory.get(friend_id)
        if friend is None:
            continue
        candidates.append(
            ParticipantCandidate(user_id=friend.id, name=friend.name, is_friend=True)
        )
    return candidates


def find_participant(
    group: Group,
    friends: Iterable[Friend],
    local_user: User,
    user_id: str,
) -> Optional[ParticipantCandidate]:
    """
    Resolve one id against the group's candidates, then its member list.

    Returns None when the id is unknown to the group.
    """
    for candidate in resolve_participants(group, friends, local_user):
        if candidate.user_id == user_id:
            return candidate

    name = group.member_name(user_id)
    if name is not None:
        return ParticipantCandidate(user_id=user_id, name=name, is_friend=False)
    return None


def find_settlement_party(
    group: Group,
    friends: Iterable[Friend],
    local_user: User,
    expenses: Iterable[Expense],
    user_id: str,
) -> Optional[ParticipantCandidate]:
    """
    Resolve someone who can pay or receive a settlement in `group`.

    Wider than `find_participant`: a friend removed from the group, or
    deleted from the directory, may still carry a balance from the group's
    expenses and must stay settleable. Lookup order is the group itself, the
    friend directory, then the participant snapshots on the group's
    expenses.
    """
    friends = list(friends)
    found = find_participant(group, friends, local_user, user_id)
    if found is not None:
        return found

    friend = friend_directory(friends).get(user_id)
    if friend is not None:
        return ParticipantCandidate(user_id=friend.id, name=friend.name, is_friend=True)

    for expense in expenses:
        if expense.group_id != group.id:
            continue
        participant = expense.participant(user_id)
        if participant is not None:
            return ParticipantCandidate(user_id=user_id, name=participant.name, is_friend=False)
    return None
