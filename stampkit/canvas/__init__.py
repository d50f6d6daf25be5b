from .arc_layout import ArcLayoutInput, GlyphPose, layout_arc
from .shapes import ShapePath, StrokeSpec, shape_path, border_strokes
from .commands import build_commands
from .images import ImageManager
from .fonts import FontsManager
from .export import DesignExporter, SvgPainter, CairoPainter, replay
