"""Cart persistence — one active cart per user, guarded writes.

Creation race: two first-time requests for the same user can both miss the
active cart and both try to create one. The repository rejects the second
insert with DuplicateCartError (the (user, active) uniqueness rule), and
``get_or_create_cart`` turns that into a short re-read loop, with a linear
backoff between attempts, that returns the winner's cart instead of
surfacing a conflict.

Write race: every cart carries a ``revision``. ``CartRepository.save``
refuses to persist a cart whose revision no longer matches the stored one,
and ``mutate_cart`` reloads and re-applies the mutation a bounded number of
times before giving up.
"""

import time
from collections.abc import Callable

import structlog
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from shopping import config
from shopping.cart.cart import Cart
from shopping.domain import shopping

logger = structlog.get_logger(__name__)


class DuplicateCartError(Exception):
    """An active cart already exists for this user."""


class StaleCartError(Exception):
    """The cart was modified by another request since it was loaded."""


class CartStoreError(Exception):
    """Unexpected persistence failure in the cart store."""


@shopping.repository(part_of=Cart)
class CartRepository:
    def find_active_for(self, user_id) -> Cart | None:
        carts = self._dao.query.filter(user_id=str(user_id), is_active=True).all().items
        if not carts:
            return None
        if len(carts) > 1:
            logger.error("Multiple active carts found for user", user_id=str(user_id), count=len(carts))
        return carts[0]

    def create_active(self, user_id) -> Cart:
        """Insert a new active cart, enforcing one active cart per user."""
        if self.find_active_for(user_id) is not None:
            raise DuplicateCartError(f"Active cart already exists for user {user_id}")
        cart = Cart.create(user_id=str(user_id))
        self.add(cart)
        return cart

    def save(self, cart: Cart) -> Cart:
        """Persist the cart if nobody else wrote it since it was loaded."""
        try:
            stored = self._dao.get(cart.id)
        except ObjectNotFoundError:
            stored = None

        if stored is not None and (stored.revision or 0) != (cart.revision or 0):
            raise StaleCartError(
                f"Cart {cart.id} is at revision {stored.revision}, write was based on revision {cart.revision}"
            )

        cart.revision = (cart.revision or 0) + 1
        self.add(cart)
        return cart


def _repo() -> CartRepository:
    return current_domain.repository_for(Cart)


def get_or_create_cart(user_id) -> Cart:
    """Return the user's active cart, creating it on first access."""
    repo = _repo()
    cart = repo.find_active_for(user_id)
    if cart is not None:
        return cart

    try:
        cart = repo.create_active(user_id)
        logger.info("Cart created", user_id=str(user_id), cart_id=str(cart.id))
        return cart
    except DuplicateCartError:
        logger.info("Concurrent cart creation detected, re-reading winner", user_id=str(user_id))

    for attempt in range(1, config.CART_CREATE_REREAD_ATTEMPTS + 1):
        if attempt > 1:
            time.sleep(config.CART_CREATE_REREAD_BACKOFF_MS * (attempt - 1) / 1000)
        cart = repo.find_active_for(user_id)
        if cart is not None:
            return cart
        logger.warning("Winning cart not visible yet", user_id=str(user_id), attempt=attempt)

    raise CartStoreError(f"Cart creation conflicted but no active cart found for user {user_id}")


def find_active_cart(user_id) -> Cart | None:
    return _repo().find_active_for(user_id)


def get_cart(user_id) -> Cart:
    """Return the user's active cart without creating one."""
    cart = _repo().find_active_for(user_id)
    if cart is None:
        raise ObjectNotFoundError("Cart not found")
    return cart


def save_cart(cart: Cart) -> Cart:
    return _repo().save(cart)


def mutate_cart(user_id, mutation: Callable[[Cart], object], create: bool = True):
    """Load the active cart, apply ``mutation`` and save, retrying on stale writes.

    ``mutation`` must be safe to re-run against a freshly loaded cart.
    Returns ``(cart, result_of_mutation)``.
    """
    attempts = config.CART_WRITE_ATTEMPTS
    for attempt in range(1, attempts + 1):
        cart = get_or_create_cart(user_id) if create else get_cart(user_id)
        result = mutation(cart)
        try:
            save_cart(cart)
            return cart, result
        except StaleCartError as exc:
            logger.warning(
                "Cart write lost a race, reloading",
                user_id=str(user_id),
                cart_id=str(cart.id),
                attempt=attempt,
                error=str(exc),
            )
            if attempt == attempts:
                raise
    raise StaleCartError(f"Could not persist cart for user {user_id}")
