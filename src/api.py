import logging
import os
import random
from typing import Annotated, List, Literal, Optional, Union

from fastapi import FastAPI, HTTPException, Request
from pydantic import BaseModel, ConfigDict, Field
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded

import core

logger = logging.getLogger(__name__)

RATE_LIMIT = os.environ.get("GAME_API_RATE_LIMIT", "100/minute")

# Initialize the rate limiter
limiter = Limiter(key_func=get_remote_address)
app = FastAPI(
    title="2048 Game API",
    description="A stateless API for playing the 2048 game. "\
                "The client keeps the game model (tiles, score deltas, status, best score) "\
                "and sends it back with every request.",
    version="2.0.0"
)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# --- Pydantic Models for API requests and responses ---

class PositionData(BaseModel):
    row: int = Field(..., ge=0)
    col: int = Field(..., ge=0)


class StaticStateData(BaseModel):
    type: Literal["static"] = "static"


class MovedStateData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: Literal["moved"] = "moved"
    from_: PositionData = Field(..., alias="from", description="Position of the tile before the move.")


class MergedStateData(BaseModel):
    type: Literal["merged"] = "merged"
    from1: PositionData = Field(..., description="Position of the first merged tile before the move.")
    from2: PositionData = Field(..., description="Position of the second merged tile before the move.")
    value: int = Field(..., gt=0, description="Value of each source tile before the merge.")


class SpawnedStateData(BaseModel):
    type: Literal["spawned"] = "spawned"


TileStateData = Annotated[
    Union[StaticStateData, MovedStateData, MergedStateData, SpawnedStateData],
    Field(discriminator="type"),
]


class TileData(BaseModel):
    position: PositionData
    value: int = Field(..., gt=0, description="Tile value, a power of two.")
    state: TileStateData = Field(default_factory=StaticStateData)


class ModelData(BaseModel):
    """The complete game model, owned by the client."""
    tiles: List[TileData] = Field(default_factory=list, max_length=core.MAX_GRID_SIZE ** 2)
    score_deltas: List[Annotated[int, Field(ge=0)]] = Field(
        default_factory=list, description="Score gained by each effective move."
    )
    game_status: core.GameStatus = Field(
        default=core.GameStatus.PLAYING,
        description="Current progress state of the game (playing, won, continue, over)."
    )
    best_score: int = Field(default=0, ge=0)


class GameSettings(BaseModel):
    """Rule settings for a game instance, sent with every request."""
    board_size: int = Field(
        default=core.CONFIG.grid_size,
        gt=1, # Board size must be at least 2x2
        le=core.MAX_GRID_SIZE,
        description="Size of the N x N game board (e.g., 4 for a 4x4 board)."
    )
    win_tile: int = Field(
        default=core.CONFIG.win_value,
        gt=0,
        description="The tile value to achieve for winning the game (e.g., 2048)."
    )
    tiles_to_spawn: int = Field(
        default=core.CONFIG.tiles_to_spawn_per_move,
        gt=0,
        description="Number of tiles added after every effective move."
    )


class NewGameSettings(GameSettings):
    """Settings for creating a new game."""
    seed: Optional[int] = Field(default=None, description="Seed for the starting tiles.")
    best_score: int = Field(default=0, ge=0, description="Best score carried over from earlier games.")


class ModelRequestData(GameSettings):
    model: ModelData


class MoveRequestData(ModelRequestData):
    """Data required to make a move."""
    direction: core.Direction = Field(..., description="Direction of the move (left, right, up, down).")
    seed: Optional[int] = Field(default=None, description="Seed for the tiles spawned by this move.")


class GameStateData(BaseModel):
    """Represents the complete state of a game instance."""
    model: ModelData
    score: int = Field(..., ge=0, description="Current score of the game.")
    board_size: int = Field(..., gt=0, description="The dimension N of the N x N board.")
    win_tile: int = Field(..., gt=0, description="The tile value required to win this game instance.")
    tiles_to_spawn: int = Field(..., gt=0)


class MoveResponseData(GameStateData):
    """Response after a move, including the new game state and move effectiveness."""
    move_was_effective: bool = Field(
        ...,
        description="True if the move produced a new model, False if it was rejected or changed nothing."
    )
    message: Optional[str] = Field(
        default=None,
        description="An optional message, e.g., if a move was invalid, game ended, or other info."
    )


class PrepareResponseData(GameStateData):
    prepared: bool = Field(..., description="False if the game is won or over and no move can follow.")

# --- Conversion between API models and core types ---

def _position_to_core(data: PositionData) -> core.Position:
    return core.Position(row=data.row, col=data.col)


def _position_to_data(position: core.Position) -> PositionData:
    return PositionData(row=position.row, col=position.col)


def _state_to_core(data: TileStateData) -> core.TileState:
    if isinstance(data, MovedStateData):
        return core.MovedState(from_=_position_to_core(data.from_))
    if isinstance(data, MergedStateData):
        return core.MergedState(
            from1=_position_to_core(data.from1),
            from2=_position_to_core(data.from2),
            value=data.value,
        )
    if isinstance(data, SpawnedStateData):
        return core.SPAWNED
    return core.STATIC


def _state_to_data(state: core.TileState) -> TileStateData:
    if isinstance(state, core.MovedState):
        return MovedStateData(from_=_position_to_data(state.from_))
    if isinstance(state, core.MergedState):
        return MergedStateData(
            from1=_position_to_data(state.from1),
            from2=_position_to_data(state.from2),
            value=state.value,
        )
    if isinstance(state, core.SpawnedState):
        return SpawnedStateData()
    return StaticStateData()


def model_from_data(data: ModelData) -> core.Model:
    tiles = tuple(
        core.Tile(
            position=_position_to_core(tile.position),
            value=tile.value,
            state=_state_to_core(tile.state),
        )
        for tile in data.tiles
    )
    return core.Model(
        tiles=tiles,
        score_deltas=tuple(data.score_deltas),
        game_status=data.game_status,
        best_score=data.best_score,
    )


def model_to_data(model: core.Model) -> ModelData:
    return ModelData(
        tiles=[
            TileData(
                position=_position_to_data(tile.position),
                value=tile.value,
                state=_state_to_data(tile.state),
            )
            for tile in model.tiles
        ],
        score_deltas=list(model.score_deltas),
        game_status=model.game_status,
        best_score=model.best_score,
    )

# --- Request validation ---

def config_from_settings(settings: GameSettings) -> core.GameConfig:
    """
    Builds the core configuration for a request.
    Raises:
        HTTPException: 400 if the settings are rejected by the core.
    """
    try:
        return core.GameConfig(
            grid_size=settings.board_size,
            tiles_to_spawn_per_move=settings.tiles_to_spawn,
            win_value=settings.win_tile,
        )
    except ValueError as e:
        logger.warning("Rejected game settings: %s", e)
        raise HTTPException(status_code=400, detail=f"Invalid game settings: {str(e)}")


def validate_model(model: core.Model, config: core.GameConfig) -> None:
    """
    Checks the board invariants the core trusts its callers to keep.
    Raises:
        HTTPException: 400 if a tile is off the board, two tiles share a cell
                       or a value is not a power of two.
    """
    n = config.grid_size
    seen = set()
    for tile in model.tiles:
        position = tile.position
        if not (0 <= position.row < n and 0 <= position.col < n):
            detail = f"Tile at ({position.row}, {position.col}) is outside the {n}x{n} board."
        elif position in seen:
            detail = f"More than one tile at ({position.row}, {position.col})."
        elif tile.value < 2 or tile.value & (tile.value - 1):
            detail = f"Tile value {tile.value} is not a power of two."
        else:
            seen.add(position)
            continue
        logger.warning("Rejected model: %s", detail)
        raise HTTPException(status_code=400, detail=f"Invalid board structure in request: {detail}")


def _random_source(seed: Optional[int]) -> core.RandomSource:
    if seed is None:
        return random.random
    return core.create_seeded_random(seed)


def _game_state(model: core.Model, config: core.GameConfig) -> dict:
    return dict(
        model=model_to_data(model),
        score=model.score,
        board_size=config.grid_size,
        win_tile=config.win_value,
        tiles_to_spawn=config.tiles_to_spawn_per_move,
    )


def _parse_model(request_data: ModelRequestData) -> tuple:
    config = config_from_settings(request_data)
    model = model_from_data(request_data.model)
    validate_model(model, config)
    return model, config

# --- API Endpoints ---

@app.post("/game/new", response_model=GameStateData, summary="Start a New 2048 Game")
@limiter.limit(RATE_LIMIT)
async def start_new_game(request: Request, settings: NewGameSettings):
    """
    Initializes a new 2048 game based on the provided settings.

    - **board_size**: Dimension of the N x N board (e.g., 4 for 4x4). Default is 4.
    - **win_tile**: Tile value to reach to win (e.g., 2048). Default is 2048.
    - **tiles_to_spawn**: Tiles added after each effective move. Default is 2.
    - **seed**: Optional seed making the starting tiles reproducible.
    - **best_score**: Best score to carry into the new game.

    Returns the initial game state: a board with two random tiles, no score
    deltas and status `playing`.
    """
    config = config_from_settings(settings)
    try:
        model = core.new_game(_random_source(settings.seed), settings.best_score, config)
    except Exception as e:
        logger.exception("Unexpected error in /game/new")
        raise HTTPException(status_code=500, detail=f"An unexpected error occurred during game creation: {str(e)}")

    logger.info("New %dx%d game started", config.grid_size, config.grid_size)
    return GameStateData(**_game_state(model, config))


@app.post("/game/move", response_model=MoveResponseData, summary="Make a Move in the Game")
@limiter.limit(RATE_LIMIT)
async def make_move(request: Request, request_data: MoveRequestData):
    """
    Processes a player's move in the game.

    Requires the current `model`, the `direction` of the move and the game
    settings. The API will:
    1. Slide and merge the tiles in the chosen direction.
    2. If the move produced the winning tile, stop there (no new tiles).
    3. Otherwise add new random tiles and check whether the board is locked.

    A rejected or ineffective move returns the submitted model unchanged with
    `move_was_effective` set to false.
    """
    model, config = _parse_model(request_data)

    try:
        next_model = core.move(model, request_data.direction, _random_source(request_data.seed), config)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"Error processing move: {str(e)}")
    except Exception as e:
        logger.exception("Unexpected error in /game/move")
        raise HTTPException(status_code=500, detail=f"An unexpected server error occurred while processing the move: {str(e)}")

    message_for_client: Optional[str] = None
    if next_model is None:
        if model.game_status in core.TERMINAL_STATUSES:
            message_for_client = f"Game is {model.game_status.value}; no further moves accepted."
        else:
            message_for_client = "Move was not effective; board state unchanged by slide."
        final_model = model
    else:
        final_model = next_model
        if final_model.game_status == core.GameStatus.WON:
            message_for_client = "Congratulations! You won!"
        elif final_model.game_status == core.GameStatus.OVER:
            message_for_client = "Game Over. No more valid moves."

    return MoveResponseData(
        **_game_state(final_model, config),
        move_was_effective=next_model is not None,
        message=message_for_client
    )


@app.post("/game/prepare", response_model=PrepareResponseData, summary="Reset Tile States Before a Move")
@limiter.limit(RATE_LIMIT)
async def prepare(request: Request, request_data: ModelRequestData):
    """
    Normalizes every tile to `static`, the first half of a move when the client
    animates tiles. `prepared` is false when the game is won or over.
    """
    model, config = _parse_model(request_data)
    prepared_model = core.prepare_move(model)
    return PrepareResponseData(
        **_game_state(prepared_model or model, config),
        prepared=prepared_model is not None,
    )


@app.post("/game/continue", response_model=GameStateData, summary="Keep Playing After a Win")
@limiter.limit(RATE_LIMIT)
async def continue_after_win(request: Request, request_data: ModelRequestData):
    """Acknowledges a win; a `won` game moves to `continue`, anything else is returned as is."""
    model, config = _parse_model(request_data)
    return GameStateData(**_game_state(core.continue_game(model), config))
