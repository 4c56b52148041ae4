from aiogram.fsm.state import State, StatesGroup


class ProductAdd(StatesGroup):
    waiting_name = State()
    waiting_description = State()
    waiting_image = State()
    waiting_type = State()
