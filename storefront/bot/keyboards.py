from aiogram.types import ReplyKeyboardMarkup, KeyboardButton

from storefront.constants import PRODUCT_TYPES


def main_kb() -> ReplyKeyboardMarkup:
    return ReplyKeyboardMarkup(
        keyboard=[
            [KeyboardButton(text="/catalog"), KeyboardButton(text="/cart")],
            [KeyboardButton(text="/checkout"), KeyboardButton(text="/clear")],
            [KeyboardButton(text="/help")],
        ],
        resize_keyboard=True,
    )


def product_types_kb() -> ReplyKeyboardMarkup:
    return ReplyKeyboardMarkup(
        keyboard=[
            [KeyboardButton(text=t) for t in PRODUCT_TYPES],
            [KeyboardButton(text="/cancel")],
        ],
        resize_keyboard=True,
        one_time_keyboard=True,
    )
