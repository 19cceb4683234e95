from catan_server.engine.board_geom import (
    Topology,
    adjacent_edges,
    adjacent_tiles,
    adjacent_vertices,
    build_topology,
    connected_vertices,
    parse_site_id,
    site_id,
)
from catan_server.engine.maps import MapValidationError, build_board_state, generate_board
from catan_server.engine.rules import (
    RuleError,
    StructuralError,
    ValidationError,
    can_place_road,
    can_place_settlement,
    can_upgrade_city,
    check_win,
    distribute_for_roll,
    valid_placements,
)
from catan_server.engine.session import CommandResult, Session
from catan_server.engine.state import GameState, RulesConfig
from catan_server.engine.turns import apply_cmd
