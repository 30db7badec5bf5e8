"""
Styling constants and theme configuration for the viewer UI.
"""

# =============================================================================
# Color Palette
# =============================================================================

# Dark theme colors
BG_COLOR = "#111111"          # Main background
BG_COLOR_LIGHT = "#181818"    # Lighter background (axes, panels)
TEXT_COLOR = "#EEEEEE"        # Main text
TEXT_COLOR_DIM = "#CCCCCC"    # Dimmed text (axis labels, etc.)
BORDER_COLOR = "#555555"      # Borders, mesh edges

# Accent colors
ACCENT_BLUE = "#6FA8FF"       # Buttons
ACCENT_ORANGE = "#FFA500"     # Model material
ACCENT_RED = "#FF6B6B"        # Errors, destructive actions
ACCENT_GREEN = "#6BCB77"      # Connected status

# =============================================================================
# PyQt5 Stylesheet
# =============================================================================

DARK_STYLESHEET = f"""
    QMainWindow, QDialog {{
        background-color: {BG_COLOR};
        color: {TEXT_COLOR};
    }}
    QLabel {{
        color: {TEXT_COLOR};
        font-size: 10pt;
    }}
    QLabel#errorLabel {{
        color: {ACCENT_RED};
        font-size: 9pt;
    }}
    QLabel#statusLabel {{
        color: {TEXT_COLOR_DIM};
        font-size: 9pt;
    }}
    QLineEdit {{
        background-color: {BG_COLOR_LIGHT};
        color: {TEXT_COLOR};
        border: 1px solid {BORDER_COLOR};
        border-radius: 4px;
        padding: 4px;
    }}
    QPushButton {{
        background-color: {ACCENT_BLUE};
        color: #FFFFFF;
        border: none;
        border-radius: 4px;
        padding: 6px 12px;
        font-weight: bold;
    }}
    QPushButton:hover {{
        background-color: #5A98EF;
    }}
    QPushButton:pressed {{
        background-color: #4A88DF;
    }}
    QPushButton#destructiveButton {{
        background-color: {ACCENT_RED};
    }}
    QPushButton#secondaryButton {{
        background-color: {BORDER_COLOR};
    }}
    QMenuBar {{
        background-color: {BG_COLOR};
        color: {TEXT_COLOR};
        border-bottom: 1px solid {BORDER_COLOR};
    }}
    QMenuBar::item:selected {{
        background-color: {BG_COLOR_LIGHT};
    }}
    QMenu {{
        background-color: {BG_COLOR_LIGHT};
        color: {TEXT_COLOR};
        border: 1px solid {BORDER_COLOR};
    }}
    QMenu::item:selected {{
        background-color: {ACCENT_BLUE};
    }}
"""
