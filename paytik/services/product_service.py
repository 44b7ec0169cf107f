"""Product catalogue of the back office: billers and mobile-money operators."""
import logging

from paytik.config import DEFAULT_BILLERS, DEFAULT_MOBILE_MONEY_OPERATORS
from paytik.data_structures import ProductItem
from paytik.result import ErrorType, Result

logger = logging.getLogger(__name__)

BILLER = "biller"
OPERATOR = "operator"

_SEEDS = {
    BILLER: DEFAULT_BILLERS,
    OPERATOR: DEFAULT_MOBILE_MONEY_OPERATORS,
}


class ProductService:
    """Handles the lists of billers and operators offered in the wallet.

    Each list is seeded with the default entries the first time it is read.
    """

    def __init__(self, db_manager):
        self.db = db_manager

    def _ensure_seeded(self, kind):
        key = f"products_seeded_{kind}"
        if self.db.get_setting(key) is None:
            with self.db.transaction():
                for item in _SEEDS[kind]:
                    self.db.add_product(item['id'], kind, item['name'])
                self.db.set_setting(key, "1")

    def _list(self, kind):
        self._ensure_seeded(kind)
        return [ProductItem(r['id'], r['name']) for r in self.db.get_products(kind)]

    def _add(self, kind, product_id, name):
        product_id = (product_id or "").strip()
        name = (name or "").strip()
        if not product_id or not name:
            return Result.fail("Product id and name are required", ErrorType.VALIDATION)
        if self._find(kind, product_id):
            return Result.fail(f"'{product_id}' already exists", ErrorType.DUPLICATE)
        self.db.add_product(product_id, kind, name)
        logger.info("Added %s %s", kind, product_id)
        return Result.ok(ProductItem(product_id, name))

    def _remove(self, kind, product_id):
        self._ensure_seeded(kind)
        if not self.db.delete_product(product_id, kind):
            return Result.fail(f"'{product_id}' not found", ErrorType.NOT_FOUND)
        logger.info("Removed %s %s", kind, product_id)
        return Result.ok(product_id)

    def _find(self, kind, product_id):
        for item in self._list(kind):
            if item.id == product_id:
                return item
        return None

    def get_billers(self):
        return self._list(BILLER)

    def add_biller(self, biller_id, name):
        return self._add(BILLER, biller_id, name)

    def remove_biller(self, biller_id):
        return self._remove(BILLER, biller_id)

    def find_biller(self, biller_id):
        return self._find(BILLER, biller_id)

    def get_operators(self):
        return self._list(OPERATOR)

    def add_operator(self, operator_id, name):
        return self._add(OPERATOR, operator_id, name)

    def remove_operator(self, operator_id):
        return self._remove(OPERATOR, operator_id)

    def find_operator(self, operator_id):
        return self._find(OPERATOR, operator_id)
