"""
Block Catalog for the smart-contract whiteboard palette.

Static registry mapping a block type id to its display metadata (icon, color,
glow, category), plus the search and filtering used by the palette sidebar.
"""

from typing import Dict, List, Optional, Any

from .models import NODE_RENDER_TYPE


ALL_CATEGORIES = "all"

CATEGORY_LABELS = {
    ALL_CATEGORIES: "All Nodes",
    "deployment": "Deployment",
    "token": "Token Ops",
    "defi": "DeFi",
    "logic": "Logic",
    "storage": "Storage",
    "external": "External",
}

# (type_id, icon, color, glow, category, description)
STANDARD_BLOCKS = [
    ("Deploy", "zap", "from-violet-500 to-purple-600", "violet", "deployment",
     "Deploy smart contract to blockchain"),
    ("Constructor", "box", "from-blue-500 to-cyan-600", "blue", "deployment",
     "Set initial contract state"),
    ("MintToken", "plus", "from-emerald-500 to-green-600", "emerald", "token",
     "Create new tokens"),
    ("BurnToken", "minus", "from-red-500 to-orange-600", "red", "token",
     "Destroy existing tokens"),
    ("Transfer", "git-branch", "from-indigo-500 to-blue-600", "indigo", "token",
     "Move tokens between accounts"),
    ("Approve", "check", "from-teal-500 to-cyan-600", "teal", "token",
     "Grant a spender an allowance"),
    ("Swap", "activity", "from-purple-500 to-pink-600", "purple", "defi",
     "Exchange one token for another"),
    ("AddLiquidity", "layers", "from-blue-500 to-indigo-600", "blue", "defi",
     "Provide liquidity to a pool"),
    ("Stake", "lock", "from-amber-500 to-yellow-600", "amber", "defi",
     "Lock tokens for rewards"),
    ("Withdraw", "unlock", "from-cyan-500 to-teal-600", "cyan", "defi",
     "Release staked or deposited funds"),
    ("Require", "filter", "from-rose-500 to-red-600", "rose", "logic",
     "Guard a condition before continuing"),
    ("Modifier", "shield", "from-slate-500 to-gray-600", "slate", "logic",
     "Reusable function precondition"),
    ("Event", "bell", "from-orange-500 to-amber-600", "orange", "logic",
     "Emit a log event"),
    ("Mapping", "database", "from-green-500 to-emerald-600", "green", "storage",
     "Key/value contract storage"),
    ("Array", "server", "from-indigo-500 to-purple-600", "indigo", "storage",
     "Ordered contract storage"),
    ("Struct", "grid", "from-pink-500 to-rose-600", "pink", "storage",
     "Grouped record type"),
    ("Oracle", "cloud", "from-blue-500 to-sky-600", "blue", "external",
     "Read off-chain data"),
    ("Interface", "code", "from-purple-500 to-indigo-600", "purple", "external",
     "Call another contract"),
    ("Payable", "dollar-sign", "from-green-500 to-emerald-600", "green", "external",
     "Accept native currency"),
]


class Category:
    """Represents a palette category of blocks."""
    
    def __init__(self, name: str, label: str = "", icon: str = "folder"):
        self.name = name
        self.label = label or name
        self.icon = icon  # Lucide icon name
        self.blocks: List['BlockDefinition'] = []
    
    def add_block(self, block: 'BlockDefinition'):
        """Add a block definition to this category."""
        self.blocks = [b for b in self.blocks if b.type_id != block.type_id]
        self.blocks.append(block)
    
    def remove_block(self, type_id: str):
        self.blocks = [b for b in self.blocks if b.type_id != type_id]


class BlockDefinition:
    """Display metadata for one block type."""
    
    def __init__(self, type_id: str, icon: str = "box", color: str = "from-gray-500 to-gray-600",
                 glow: str = "gray", category: str = "general", description: str = ""):
        self.type_id = type_id
        self.icon = icon  # Lucide icon name
        self.color = color
        self.glow = glow
        self.category = category
        self.description = description
        self.tags: List[str] = []
    
    def add_tag(self, tag: str):
        """Add a tag for searching and filtering."""
        if tag not in self.tags:
            self.tags.append(tag)
        return self
    
    def matches_search(self, query: str) -> bool:
        """Check if this block matches a search query."""
        query_lower = query.lower()
        return (
            query_lower in self.type_id.lower() or
            query_lower in self.description.lower() or
            any(query_lower in tag.lower() for tag in self.tags) or
            query_lower in self.category.lower()
        )
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            'type': self.type_id,
            'icon': self.icon,
            'color': self.color,
            'glow': self.glow,
            'category': self.category,
            'description': self.description,
            'tags': list(self.tags),
        }


FALLBACK_BLOCK = BlockDefinition("Function", icon="code", category="general",
                                 description="Generic block")


class SearchIndex:
    """Provides scored search over block definitions."""
    
    def __init__(self):
        self.blocks: Dict[str, BlockDefinition] = {}
    
    def add_block(self, block: BlockDefinition):
        self.blocks[block.type_id] = block
    
    def remove_block(self, type_id: str):
        self.blocks.pop(type_id, None)
    
    def search(self, query: str, limit: int = 50) -> List[BlockDefinition]:
        """Search for blocks matching the query, best matches first."""
        if not query.strip():
            return list(self.blocks.values())[:limit]
        
        results = []
        query_lower = query.lower()
        
        for block in self.blocks.values():
            score = 0
            
            # Exact name match gets highest score
            if block.type_id.lower() == query_lower:
                score += 100
            elif query_lower in block.type_id.lower():
                score += 50
            
            if query_lower in block.description.lower():
                score += 20
            
            for tag in block.tags:
                if query_lower in tag.lower():
                    score += 30
            
            if query_lower in block.category.lower():
                score += 10
            
            if score > 0:
                results.append((score, block))
        
        # Stable sort keeps catalog order among equal scores
        results.sort(key=lambda x: x[0], reverse=True)
        return [block for score, block in results[:limit]]


class BlockCatalog:
    """Registry of the block types available on the palette."""
    
    def __init__(self, load_standard: bool = True):
        self.categories: Dict[str, Category] = {}
        self.search_index = SearchIndex()
        for name, label in CATEGORY_LABELS.items():
            if name != ALL_CATEGORIES:
                self.categories[name] = Category(name, label)
        if load_standard:
            self.load_standard_blocks()
    
    def load_standard_blocks(self):
        """Register the standard smart-contract blocks."""
        for type_id, icon, color, glow, category, description in STANDARD_BLOCKS:
            block = BlockDefinition(type_id, icon, color, glow, category, description)
            block.add_tag(category)
            self.register(block)
    
    def register(self, block: BlockDefinition):
        """Add or replace a block definition."""
        existing = self.search_index.blocks.get(block.type_id)
        if existing is not None and existing.category in self.categories:
            self.categories[existing.category].remove_block(block.type_id)
        if block.category not in self.categories:
            self.categories[block.category] = Category(block.category, block.category.title())
        self.categories[block.category].add_block(block)
        self.search_index.add_block(block)
    
    def get(self, type_id: str) -> Optional[BlockDefinition]:
        return self.search_index.blocks.get(type_id)
    
    def get_or_default(self, type_id: str) -> BlockDefinition:
        """Return the block for a type id, or the generic fallback block."""
        return self.get(type_id) or FALLBACK_BLOCK
    
    def __contains__(self, type_id: str) -> bool:
        return type_id in self.search_index.blocks
    
    def __len__(self) -> int:
        return len(self.search_index.blocks)
    
    def type_ids(self) -> List[str]:
        return list(self.search_index.blocks)
    
    def filter(self, search_term: str = "", category: str = ALL_CATEGORIES) -> List[BlockDefinition]:
        """Sidebar filter: type id substring match within a category."""
        term = search_term.lower()
        results = []
        for block in self.search_index.blocks.values():
            if term not in block.type_id.lower():
                continue
            if category != ALL_CATEGORIES and block.category != category:
                continue
            results.append(block)
        return results
    
    def search(self, query: str, limit: int = 50) -> List[BlockDefinition]:
        return self.search_index.search(query, limit)
    
    def get_categories(self) -> Dict[str, str]:
        """Category name to display label, including the 'all' pseudo-category."""
        labels = {ALL_CATEGORIES: CATEGORY_LABELS[ALL_CATEGORIES]}
        for name, category in self.categories.items():
            labels[name] = category.label
        return labels
    
    def get_category_blocks(self, category_name: str) -> List[BlockDefinition]:
        category = self.categories.get(category_name)
        return list(category.blocks) if category else []
    
    def drag_payload(self, type_id: str) -> Dict[str, str]:
        """Build the palette drag-and-drop transfer payload for a block."""
        return {
            'type': NODE_RENDER_TYPE,
            'label': f"New {type_id}",
            'nodeType': type_id,
        }
