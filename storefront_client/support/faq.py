"""Canned FAQ answers for the self-service support bot."""
from dataclasses import dataclass, field


@dataclass(frozen=True)
class FaqEntry:
    question: str
    answer: str


FAQ_ENTRIES = [
    FaqEntry(
        "How do I place an order?",
        "Add items to your cart, then check out: pick a shipping address, a delivery method "
        "and a payment method, review the order and place it.",
    ),
    FaqEntry(
        "What payment methods do you accept?",
        "Cash on delivery, GCash and PayMaya. For e-wallet payments, enter the account name, "
        "account number, reference number and payment date at checkout.",
    ),
    FaqEntry(
        "How can I track my order?",
        "Open your orders list and select an order to see its progress: placed, processing, "
        "shipped and delivered. Shipped orders include courier tracking details.",
    ),
    FaqEntry(
        "What is your return policy?",
        "Items can be returned within 30 days in their original condition with tags attached. "
        "Contact support to start a return.",
    ),
    FaqEntry(
        "How long does shipping take?",
        "Standard delivery takes 3-5 days and priority delivery 1-2 days. Fees depend on your "
        "region; Metro Manila and Calabarzon have the lowest rates.",
    ),
    FaqEntry(
        "Do you ship outside the Philippines?",
        "Not yet. We currently deliver to every region in the Philippines.",
    ),
    FaqEntry(
        "How do I change or cancel my order?",
        "Contact support within 24 hours of placing the order. After that the order may "
        "already be on its way.",
    ),
    FaqEntry(
        "I forgot my password. What should I do?",
        "Use the password reset link on the login page and follow the emailed instructions.",
    ),
    FaqEntry(
        "Are my payment details secure?",
        "Payment references are only used to verify your payment and are never shown in full.",
    ),
    FaqEntry(
        "How can I contact customer support?",
        "Start a support conversation from the chat and a team member will reply there.",
    ),
    FaqEntry(
        "Do you offer discounts or promotions?",
        "We run seasonal promotions. Featured products on the home page show current offers.",
    ),
    FaqEntry(
        "What is your warranty policy?",
        "Most products carry a manufacturer's warranty; details are on each product page.",
    ),
]

HUMAN_HANDOFF = (
    "To talk to a person, start a support conversation and a team member will reply there."
)
NO_MATCH = (
    "Sorry, I don't have an answer for that. Would you like to start a support "
    "conversation with our team?"
)

_TOPIC_SUGGESTIONS = [
    (("order", "purchase"), [
        "How can I track my order?",
        "How do I change or cancel my order?",
        "What is your return policy?",
    ]),
    (("payment", "pay"), [
        "What payment methods do you accept?",
        "Are my payment details secure?",
        "Do you offer discounts or promotions?",
    ]),
    (("shipping", "delivery"), [
        "How long does shipping take?",
        "Do you ship outside the Philippines?",
        "How can I track my order?",
    ]),
]
_DEFAULT_SUGGESTIONS = [
    "What is your return policy?",
    "How can I contact customer support?",
    "Do you offer discounts or promotions?",
]


@dataclass
class FaqBot:
    entries: list[FaqEntry] = field(default_factory=lambda: list(FAQ_ENTRIES))

    def answer(self, question: str) -> str:
        q = question.strip().lower()
        if not q:
            return NO_MATCH

        if any(p in q for p in ("talk to human", "real person", "agent")):
            return HUMAN_HANDOFF

        for entry in self.entries:
            if entry.question.lower() == q:
                return entry.answer

        # Loose match: the question minus its first word, or the input inside a question
        for entry in self.entries:
            known = entry.question.lower()
            tail = " ".join(known.split(" ")[1:])
            if (tail and tail in q) or q in known:
                return entry.answer

        return NO_MATCH

    def suggestions(self, last_question: str = "") -> list[str]:
        q = last_question.lower()
        for keywords, questions in _TOPIC_SUGGESTIONS:
            if any(k in q for k in keywords):
                return questions
        return _DEFAULT_SUGGESTIONS
