from .chat import ChatService
from .doctor import run_doctor_checks
from .exporter import export_orders
from .fulfillment import FulfillmentOutcome, FulfillmentService, OutcomeKind
from .importer import OrderImporter, order_from_payload
from .operators import OperatorService
from .views import ConversationInbox, ConversationThread, OrderBoard, OrderPage

__all__ = [
    "ChatService",
    "ConversationInbox",
    "ConversationThread",
    "FulfillmentOutcome",
    "FulfillmentService",
    "OperatorService",
    "OrderImporter",
    "OrderBoard",
    "OrderPage",
    "OutcomeKind",
    "export_orders",
    "order_from_payload",
    "run_doctor_checks",
]
