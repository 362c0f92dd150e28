# mlm_system/__init__.py
"""
MLM System - commission engine and referral forest model.
"""

# Services
from mlm_system.services.commission_service import CommissionService, CommissionBreakdown
from mlm_system.services.rank_service import RankService
from mlm_system.services.tree_service import TreeViewState
from mlm_system.services.tree_loader import LazyTreeLoader

# Configuration
from mlm_system.config.commissions import PurchasePath, CommissionSource
from mlm_system.config.ranks import RankRange, RANK_PRESETS

# Utilities
from mlm_system.utils.chain_walker import (
    ChainWalker,
    ReferralChainError,
    OrphanedMemberError,
    SponsorCycleError,
)
from mlm_system.utils.tree_utils import (
    TreeNode,
    flatten_tree,
    find_path_to_member,
    expand_path_to_member,
)

__all__ = [
    # Services
    'CommissionService',
    'CommissionBreakdown',
    'RankService',
    'TreeViewState',
    'LazyTreeLoader',

    # Config
    'PurchasePath',
    'CommissionSource',
    'RankRange',
    'RANK_PRESETS',

    # Utils
    'ChainWalker',
    'ReferralChainError',
    'OrphanedMemberError',
    'SponsorCycleError',
    'TreeNode',
    'flatten_tree',
    'find_path_to_member',
    'expand_path_to_member',
]
