import logging
from typing import Dict

from aiogram import Router
from aiogram.filters import Command
from aiogram.fsm.context import FSMContext
from aiogram.types import FSInputFile, Message, ReplyKeyboardRemove

from storefront.bot.keyboards import main_kb, product_types_kb
from storefront.bot.states import ProductAdd
from storefront.config import settings
from storefront.constants import CART_STORAGE_KEY, ITEM_CATEGORIES, PRODUCT_TYPES
from storefront.db.sqlite import SqliteCartStorage
from storefront.models import Product
from storefront.services.cart import CartStore
from storefront.services.checkout import CheckoutOrchestrator, CheckoutState
from storefront.services.paypal import PayPalClient, PayPalError
from storefront.services.receipt_pdf import generate_receipt_pdf
from storefront.utils.formatters import money

logger = logging.getLogger(__name__)

router = Router()

paypal = PayPalClient()

CARTS: Dict[int, CartStore] = {}  # user_id -> cart
CHECKOUTS: Dict[int, CheckoutOrchestrator] = {}  # user_id -> checkout
CATALOG: Dict[str, Product] = {}  # последний /catalog


def _is_admin(message: Message) -> bool:
    try:
        return int(message.from_user.id) == int(settings.admin_id)
    except Exception:
        return False


def _cart(user_id: int) -> CartStore:
    cart = CARTS.get(user_id)
    if cart is None:
        cart = CartStore(SqliteCartStorage(), key=f"{CART_STORAGE_KEY}:{user_id}")
        CARTS[user_id] = cart
    return cart


def _checkout(user_id: int) -> CheckoutOrchestrator:
    checkout = CHECKOUTS.get(user_id)
    if checkout is None:
        checkout = CheckoutOrchestrator(_cart(user_id), paypal)
        CHECKOUTS[user_id] = checkout
    return checkout


def _cart_text(cart: CartStore) -> str:
    rows = cart.get_display_cart()
    if not rows:
        return "🧺 Корзина пуста."
    lines = ["<b>🧺 Корзина:</b>"]
    for r in rows:
        cat = ITEM_CATEGORIES.get(r.category or "", "General")
        lines.append(
            f"• <code>{r.product_id}</code> {r.name} ({cat}) — {money(r.unit_price)} × {r.quantity} = {money(r.subtotal)}"
        )
    lines.append("")
    lines.append(f"Позиций: {cart.get_item_count()}")
    lines.append(f"<b>Итого: {money(cart.get_total_value())}</b>")
    return "\n".join(lines)


async def _find_product(product_id: str) -> Product:
    product = CATALOG.get(product_id)
    if product is not None:
        return product
    data = await paypal.get_product(product_id)
    product = Product.from_paypal(data, settings.default_price)
    CATALOG[product.id] = product
    return product


@router.message(Command("start"))
async def cmd_start(message: Message):
    await message.answer(f"✅ {settings.brand_name}: магазин открыт. /help — команды", reply_markup=main_kb())


@router.message(Command("cancel"))
async def cmd_cancel(message: Message, state: FSMContext):
    await state.clear()
    await message.answer("❎ Отменено. Можно вводить команды заново.", reply_markup=ReplyKeyboardRemove())


@router.message(Command("help"))
async def cmd_help(message: Message):
    text = (
        "<b>Магазин — команды</b>\n\n"
        "/catalog — товары\n"
        "/add ID — добавить 1 шт в корзину\n"
        "/cart — показать корзину\n"
        "/remove ID — убрать 1 шт\n"
        "/remove ID all — убрать товар целиком\n"
        "/qty ID N — установить количество\n"
        "/clear — очистить корзину\n\n"
        "<b>Оплата</b>\n"
        "/checkout — создать заказ PayPal\n"
        "/paid [ORDER_ID] — я оплатил, завершить заказ\n"
        "/cancel_checkout — отменить оплату\n"
    )
    if _is_admin(message):
        text += (
            "\n<b>Админ</b>\n"
            "/product_add — мастер добавления товара в каталог PayPal\n"
            "/product_hide ID — скрыть товар (no inventory)\n"
        )
    await message.answer(text)


# ---------------- catalog ----------------

@router.message(Command("catalog"))
async def cmd_catalog(message: Message):
    try:
        products = await paypal.list_shop_products()
    except PayPalError as e:
        await message.answer(f"❌ Каталог недоступен: {e.message}")
        return

    CATALOG.clear()
    CATALOG.update({p.id: p for p in products})
    if not products:
        await message.answer("Товаров пока нет.")
        return

    lines = ["<b>Товары:</b>"]
    for p in products:
        lines.append(f"• <code>{p.id}</code> {p.name} — {money(p.price)}")
    lines.append("\nДобавить: /add ID")
    await message.answer("\n".join(lines))


# ---------------- cart ----------------

@router.message(Command("add"))
async def cmd_add(message: Message):
    parts = (message.text or "").split()
    if len(parts) != 2:
        await message.answer("Формат: /add ID")
        return

    try:
        product = await _find_product(parts[1].strip())
    except PayPalError as e:
        await message.answer(f"❌ {e.message}")
        return
    if not product.in_stock:
        await message.answer("❌ Товара нет в наличии")
        return

    cart = _cart(message.from_user.id)
    cart.add_to_cart(product)
    await message.answer(f"✅ Добавлено: {product.name}. В корзине: {cart.quantity_of(product.id)} шт")


@router.message(Command("cart"))
async def cmd_cart(message: Message):
    await message.answer(_cart_text(_cart(message.from_user.id)))


@router.message(Command("remove"))
async def cmd_remove(message: Message):
    parts = (message.text or "").split()
    if len(parts) not in (2, 3):
        await message.answer("Формат: /remove ID или /remove ID all")
        return

    remove_all = len(parts) == 3 and parts[2].lower() == "all"
    removed = _cart(message.from_user.id).remove_from_cart(parts[1], remove_all)
    if not removed:
        await message.answer("Этого товара нет в корзине")
        return
    await message.answer(f"✅ Удалено: {removed} шт")


@router.message(Command("qty"))
async def cmd_qty(message: Message):
    parts = (message.text or "").split()
    if len(parts) != 3:
        await message.answer("Формат: /qty ID N")
        return

    _, product_id, qty_s = parts
    try:
        qty = int(qty_s)
    except ValueError:
        await message.answer("N должно быть целым числом, пример: 3")
        return

    cart = _cart(message.from_user.id)
    if qty > 0 and cart.quantity_of(product_id) == 0:
        await message.answer("Сначала добавь товар: /add ID")
        return

    cart.update_quantity(product_id, qty)
    await message.answer(_cart_text(cart))


@router.message(Command("clear"))
async def cmd_clear(message: Message):
    _cart(message.from_user.id).clear_cart()
    await message.answer("🧺 Корзина очищена.")


# ---------------- checkout ----------------

@router.message(Command("checkout"))
async def cmd_checkout(message: Message):
    checkout = _checkout(message.from_user.id)
    ok, res = await checkout.start()
    if not ok:
        await message.answer(f"❌ {res}")
        return

    link = checkout.approve_url or "(ссылка недоступна)"
    await message.answer(
        f"💳 Заказ <code>{res}</code> создан.\n"
        f"Сумма: {money(_cart(message.from_user.id).get_total_value())}\n\n"
        f"Оплатить: {link}\n"
        "После оплаты: /paid\nОтмена: /cancel_checkout"
    )


@router.message(Command("paid"))
async def cmd_paid(message: Message):
    checkout = _checkout(message.from_user.id)
    parts = (message.text or "").split()
    order_id = parts[1].strip() if len(parts) >= 2 else (checkout.order_id or "")

    ok, res = await checkout.approve(order_id)
    if not ok:
        if checkout.state == CheckoutState.FAILED:
            await message.answer(f"❌ Оплата не прошла: {res}\nКорзина сохранена, можно повторить: /checkout")
        else:
            await message.answer(f"❌ {res}")
        return

    if checkout.receipt is not None:
        try:
            pdf_path = generate_receipt_pdf(checkout.receipt)
            await message.answer_document(FSInputFile(pdf_path))
        except Exception as e:
            await message.answer(f"⚠️ Оплата прошла, но чек не сгенерировался: {e}")

    await message.answer(f"✅ Заказ <code>{res}</code> оплачен. Спасибо!")


@router.message(Command("cancel_checkout"))
async def cmd_cancel_checkout(message: Message):
    ok, res = _checkout(message.from_user.id).cancel()
    if not ok:
        await message.answer(f"❌ {res}")
        return
    await message.answer("❎ Оплата отменена, корзина сохранена.")


# ---------------- admin: catalog ----------------

@router.message(Command("product_add"))
async def cmd_product_add(message: Message, state: FSMContext):
    if not _is_admin(message):
        return

    await state.clear()
    await state.set_state(ProductAdd.waiting_name)
    await message.answer(
        "Ок, добавляем товар в каталог PayPal.\n\n1/4) Введите НАЗВАНИЕ\nОтмена: /cancel",
        reply_markup=ReplyKeyboardRemove(),
    )


@router.message(ProductAdd.waiting_name)
async def product_add_name(message: Message, state: FSMContext):
    if not _is_admin(message):
        return

    name = (message.text or "").strip()
    if not name or name.startswith("/"):
        await message.answer("Введите название текстом. Отмена: /cancel")
        return

    await state.update_data(name=name)
    await state.set_state(ProductAdd.waiting_description)
    await message.answer("2/4) Введите ОПИСАНИЕ (до 256 символов)\nОтмена: /cancel")


@router.message(ProductAdd.waiting_description)
async def product_add_description(message: Message, state: FSMContext):
    if not _is_admin(message):
        return

    description = (message.text or "").strip()
    if not description or description.startswith("/"):
        await message.answer("Введите описание текстом. Отмена: /cancel")
        return

    await state.update_data(description=description)
    await state.set_state(ProductAdd.waiting_image)
    await message.answer("3/4) Введите ссылку на КАРТИНКУ (https://...)\nОтмена: /cancel")


@router.message(ProductAdd.waiting_image)
async def product_add_image(message: Message, state: FSMContext):
    if not _is_admin(message):
        return

    url = (message.text or "").strip()
    if not url.startswith("https://"):
        await message.answer("Ссылка должна начинаться с https://\nОтмена: /cancel")
        return

    await state.update_data(image_url=url)
    await state.set_state(ProductAdd.waiting_type)
    await message.answer("4/4) Выберите ТИП товара", reply_markup=product_types_kb())


@router.message(ProductAdd.waiting_type)
async def product_add_type(message: Message, state: FSMContext):
    if not _is_admin(message):
        return

    product_type = (message.text or "").strip().upper()
    if product_type not in PRODUCT_TYPES:
        await message.answer(f"Тип: {', '.join(PRODUCT_TYPES)}\nОтмена: /cancel")
        return

    data = await state.get_data()
    try:
        created = await paypal.create_product(
            name=str(data.get("name", "")),
            description=str(data.get("description", "")),
            image_url=str(data.get("image_url", "")),
            product_type=product_type,
        )
        await message.answer(
            f"✅ Товар добавлен: <code>{created.get('id')}</code> {created.get('name')}",
            reply_markup=main_kb(),
        )
    except (ValueError, PayPalError) as e:
        await message.answer(f"❌ Ошибка добавления товара: {e}", reply_markup=main_kb())
    finally:
        await state.clear()


@router.message(Command("product_hide"))
async def cmd_product_hide(message: Message):
    if not _is_admin(message):
        return

    parts = (message.text or "").split()
    if len(parts) != 2:
        await message.answer("Формат: /product_hide ID")
        return

    try:
        name = await paypal.mark_no_inventory(parts[1])
    except PayPalError as e:
        await message.answer(f"❌ {e.message}")
        return

    CATALOG.pop(parts[1], None)
    await message.answer(f"✅ Скрыт: {name}")
