from linkflow.services.linking.session_store import SessionStore
from linkflow.services.linking.item_registry import ItemRegistry
from linkflow.services.linking.link_flow_controller import LinkFlowController

__all__ = [
    "SessionStore",
    "ItemRegistry",
    "LinkFlowController",
]
