from .state import MM_TO_PX, APP_TITLE, AppSettings, load_settings
from .objects import Design, Product, StraightLine, CurvedLine, FontSpec
