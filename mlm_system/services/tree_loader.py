# mlm_system/services/tree_loader.py
"""
Lazy loading of the referral forest, one level at a time.

Children of a member are fetched the first time the member is expanded and
kept until invalidate(). Concurrent requests for the same member share one
fetch: the second caller awaits the task of the first.

Roots are ordered oldest registration first. Recruits keep the order of
their sponsor's team list, the same order the rows are rendered in.
"""
import asyncio
import logging
from typing import Awaitable, Callable, Dict, List, Optional, Set

from mlm_system.utils.tree_utils import TreeNode, flatten_tree, sort_by_registration

logger = logging.getLogger(__name__)

FetchChildren = Callable[[str], Awaitable[List]]
FetchRoots = Callable[[], Awaitable[List]]


class LazyTreeLoader:
    """
    Incrementally materialized referral forest.

    Usage:
        loader = LazyTreeLoader(source.fetch_children, source.fetch_roots)
        await loader.loadRoots()
        await loader.toggle(memberId)
        rows = loader.rows(ranks)
    """

    def __init__(self, fetchChildren: FetchChildren, fetchRoots: Optional[FetchRoots] = None):
        self.fetchChildren = fetchChildren
        self.fetchRoots = fetchRoots
        self.roots: List = []
        self.expandedIds: Set[str] = set()
        self.requestCount = 0
        self._children: Dict[str, List] = {}
        self._inflight: Dict[str, asyncio.Task] = {}
        # Bumped by invalidate(); fetches started under an older value are not cached
        self._generation = 0

    async def loadRoots(self) -> List:
        if self.fetchRoots is None:
            raise ValueError("LazyTreeLoader has no root fetcher")

        generation = self._generation
        members = await self.fetchRoots()
        self.requestCount += 1
        roots = sort_by_registration(
            member for member in members
            if not member.sponsorID and not member.isAdmin
        )
        if generation == self._generation:
            self.roots = roots
        logger.debug(f"Loaded {len(roots)} root members")
        return roots

    def _findLoaded(self, memberId: str):
        for member in self.roots:
            if member.memberID == memberId:
                return member
        for children in self._children.values():
            for member in children:
                if member.memberID == memberId:
                    return member
        return None

    def _inTeamOrder(self, parentId: str, members: List) -> List:
        """Admins out, sponsor's team order when the sponsor is loaded."""
        children = [member for member in members if not member.isAdmin]
        parent = self._findLoaded(parentId)
        if parent is None or not parent.team:
            return children

        position = {memberId: index for index, memberId in enumerate(parent.team)}
        return sorted(children, key=lambda member: position.get(member.memberID, len(position)))

    async def _fetch(self, parentId: str, generation: int) -> List:
        self.requestCount += 1
        try:
            members = await self.fetchChildren(parentId)
        except Exception as e:
            logger.error(f"Failed to load children of {parentId}: {e}")
            raise

        children = self._inTeamOrder(parentId, members)
        if generation != self._generation:
            logger.debug(f"Dropping children of {parentId} fetched before invalidate")
            return children

        self._children[parentId] = children
        logger.debug(f"Loaded {len(children)} children of {parentId}")
        return children

    def _forget(self, parentId: str, task: asyncio.Task) -> None:
        if self._inflight.get(parentId) is task:
            del self._inflight[parentId]

    async def loadChildren(self, parentId: str) -> List:
        """
        Direct recruits of parentId, fetched at most once.

        A failed fetch is not cached, the next call retries it.
        """
        if parentId in self._children:
            return self._children[parentId]

        task = self._inflight.get(parentId)
        if task is None:
            task = asyncio.ensure_future(self._fetch(parentId, self._generation))
            self._inflight[parentId] = task
            task.add_done_callback(lambda done: self._forget(parentId, done))
        else:
            logger.debug(f"Children of {parentId} already loading, joining request")

        return await asyncio.shield(task)

    def isLoaded(self, parentId: str) -> bool:
        return parentId in self._children

    def isLoading(self, parentId: str) -> bool:
        return parentId in self._inflight

    async def toggle(self, memberId: str) -> bool:
        """
        Expand (loading children if needed) or collapse a member.

        Returns:
            True if the member is expanded afterwards
        """
        if memberId in self.expandedIds:
            self.expandedIds.discard(memberId)
            return False

        await self.loadChildren(memberId)
        self.expandedIds.add(memberId)
        return True

    def invalidate(self) -> None:
        """
        Drop every loaded level; the next expand refetches.

        Fetches still running finish for their callers but are neither
        cached nor joined by later requests.
        """
        self._generation += 1
        self._children.clear()
        self._inflight.clear()
        self.roots = []
        self.expandedIds = set()
        logger.info("Lazy tree cache invalidated")

    def loadedMembers(self) -> List:
        """Roots and every loaded recruit, each member once."""
        members = {member.memberID: member for member in self.roots}
        for children in self._children.values():
            for member in children:
                members.setdefault(member.memberID, member)
        return list(members.values())

    def rows(self, ranks: Optional[Dict[str, int]] = None) -> List[TreeNode]:
        """Visible rows of the loaded part of the forest."""
        return flatten_tree(
            self.loadedMembers(),
            {memberId for memberId in self.expandedIds if memberId in self._children},
            ranks or {}
        )
