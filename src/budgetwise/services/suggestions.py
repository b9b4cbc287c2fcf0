from collections.abc import Mapping, Sequence

from budgetwise.logger import get_logger
from budgetwise.models import CategorySuggestion

logger = get_logger(__name__)

DEFAULT_CATEGORY = "Shopping"
MAX_AUTOFILL = 5

COMMON_MERCHANTS: Mapping[str, tuple[str, ...]] = {
    "Food": ("McDonald's", "Starbucks", "Subway", "Pizza Hut", "KFC", "Grocery Store"),
    "Transport": ("Gas Station", "Uber", "Taxi", "Bus Ticket", "Train Ticket", "Parking"),
    "Shopping": ("Amazon", "Target", "Walmart", "Best Buy", "Clothing Store", "Electronics"),
    "Bills": ("Electric Bill", "Water Bill", "Internet", "Phone Bill", "Rent", "Insurance"),
    "Entertainment": ("Netflix", "Cinema", "Concert", "Gaming", "Sports Event", "Streaming"),
    "Health": ("Pharmacy", "Doctor Visit", "Dentist", "Hospital", "Gym Membership", "Supplements"),
    "Education": ("Books", "Course Fee", "School Supplies", "Online Course", "Workshop", "Certification"),
}

CATEGORY_KEYWORDS: Mapping[str, tuple[str, ...]] = {
    "Food": ("restaurant", "cafe", "food", "lunch", "dinner", "breakfast", "grocery", "market"),
    "Transport": ("gas", "fuel", "uber", "taxi", "bus", "train", "parking", "toll"),
    "Shopping": ("store", "shop", "mall", "amazon", "online", "purchase", "buy"),
    "Bills": ("bill", "utility", "electric", "water", "internet", "phone", "rent", "insurance"),
    "Entertainment": ("movie", "cinema", "game", "concert", "show", "streaming", "netflix"),
    "Health": ("pharmacy", "doctor", "hospital", "medical", "health", "gym", "fitness"),
    "Education": ("book", "course", "school", "education", "learning", "training"),
}


class CategorySuggester:
    """
    Guesses a category from a transaction title.

    Known merchant names are tried first, then single keywords, both as
    case-insensitive substrings in table order. Titles matching neither fall
    back to ``default_category``.
    """

    def __init__(
        self,
        merchants: Mapping[str, Sequence[str]] = COMMON_MERCHANTS,
        keywords: Mapping[str, Sequence[str]] = CATEGORY_KEYWORDS,
        default_category: str = DEFAULT_CATEGORY,
    ):
        self.merchants = merchants
        self.keywords = keywords
        self.default_category = default_category

    def suggest(self, title: str) -> CategorySuggestion:
        text = title.lower()
        for category, names in self.merchants.items():
            for name in names:
                if name.lower() in text:
                    return CategorySuggestion(category=category, source="merchant", matched=name)
        for category, words in self.keywords.items():
            for word in words:
                if word in text:
                    return CategorySuggestion(category=category, source="keyword", matched=word)
        logger.debug("[SUGGEST] No match for '%s'; using %s.", title, self.default_category)
        return CategorySuggestion(category=self.default_category, source="default")

    def suggest_category(self, title: str) -> str:
        return self.suggest(title).category

    def autofill(self, partial: str, category: str | None = None, limit: int = MAX_AUTOFILL) -> list[str]:
        """Merchant names containing ``partial``, limited to ``category`` when it is known."""
        text = partial.lower()
        if category and category in self.merchants:
            candidates = list(self.merchants[category])
        else:
            candidates = [name for names in self.merchants.values() for name in names]
        return [name for name in candidates if text in name.lower()][:max(0, limit)]
