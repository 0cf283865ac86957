"""Application-wide constants.

Reference: DESIGN.md — Constants.
"""

APP_NAME = "VibeDB Schema Designer"
APP_VERSION = "0.3.0"

# Foreign keys reference this column unless told otherwise
DEFAULT_LINKED_COLUMN = "id"

# Schema document format
SCHEMA_FORMAT_VERSION = "1.0"

# Canvas placement grid (import / AI generation)
GRID_COLUMNS = 3
GRID_SPACING = 300.0
GRID_MARGIN = 100.0
NEW_TABLE_OFFSET = 200.0

# Force layout defaults
LAYOUT_ITERATIONS = 150
LAYOUT_REPULSION = 2500.0
LAYOUT_SPRING_LENGTH = 200.0
LAYOUT_SPRING_STIFFNESS = 0.05
LAYOUT_CENTERING = 0.02
LAYOUT_MAX_DISPLACEMENT = 20.0

# Naming convention used by the audit linter
DEFAULT_NAMING_CONVENTION = "snake_case"

# Max characters of a statement kept in deployment reports
DEPLOY_STATEMENT_PREVIEW = 80
