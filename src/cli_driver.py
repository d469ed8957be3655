# cli_driver.py
# This file is intended to be run to play or test the 2048 game on the CLI

import argparse
import logging
from typing import List, Optional

from core import (
    Direction,
    GameConfig,
    GameStatus,
    Model,
    continue_game,
    create_all_test_tiles_model,
    create_seeded_random,
    create_test_game_over_model,
    create_test_win_model,
    move,
    new_game,
    prepare_move,
    tiles_to_matrix,
)

logger = logging.getLogger(__name__)

DIRECTION_MAP = {
    'W': Direction.UP, 'A': Direction.LEFT, 'S': Direction.DOWN, 'D': Direction.RIGHT,
    'UP': Direction.UP, 'LEFT': Direction.LEFT, 'DOWN': Direction.DOWN, 'RIGHT': Direction.RIGHT,
}

SCENARIOS = {
    'standard': lambda model, config: model,
    'win': lambda model, config: create_test_win_model(model),
    'over': create_test_game_over_model,
    'all-tiles': create_all_test_tiles_model,
}


def parse_direction(move_input: str) -> Optional[Direction]:
    """Translates a typed key or word into a Direction; None if it means nothing."""
    return DIRECTION_MAP.get(move_input.strip().upper())


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Play 2048 in the terminal")
    parser.add_argument("--size", type=int, default=4, help="Board dimension N")
    parser.add_argument("--win-tile", type=int, default=2048, help="Tile value that wins")
    parser.add_argument("--spawn", type=int, default=2, help="Tiles spawned per move")
    parser.add_argument("--seed", type=int, default=1, help="Random seed")
    parser.add_argument("--scenario", choices=sorted(SCENARIOS), default="standard",
                        help="Start from a prepared board")
    parser.add_argument("--verbose", action="store_true", help="Log rule engine decisions")
    return parser


def main(argv: Optional[List[str]] = None) -> Model:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    # 1. Initialize game
    try:
        config = GameConfig(grid_size=args.size, tiles_to_spawn_per_move=args.spawn, win_value=args.win_tile)
    except ValueError as e:
        logger.error("Invalid settings: %s", e)
        raise SystemExit(2)

    random_source = create_seeded_random(args.seed)
    model = SCENARIOS[args.scenario](new_game(random_source, config=config), config)
    logger.info("Started %dx%d game (seed=%d, scenario=%s)", args.size, args.size, args.seed, args.scenario)
    display_model(model, config)

    # 2. Game Loop
    while model.game_status != GameStatus.OVER:
        if model.game_status == GameStatus.WON:
            answer = input("You reached the winning tile! Keep playing? (y/n): ").strip().lower()
            if answer != 'y':
                break
            model = continue_game(model)
            continue

        move_input = input("Enter move (W/A/S/D for Up/Left/Down/Right, Q to quit): ").upper()

        if move_input.strip() == 'Q':
            print("Quitting game.")
            break

        chosen_direction = parse_direction(move_input)
        if not chosen_direction:
            print("Invalid input. Use W, A, S, D.")
            continue

        # 3. Process the move on a board whose tiles are all static again
        prepared = prepare_move(model)
        next_model = move(prepared or model, chosen_direction, random_source, config)

        if next_model is None:
            print("Move did not change the board. Try a different direction.")
            continue

        model = next_model
        display_model(model, config)

    # 4. Game Ended
    print("\n--- Final Board State ---")
    display_model(model, config)
    if model.game_status in (GameStatus.WON, GameStatus.CONTINUE):
        print("Congratulations! You reached the winning tile!")
    elif model.game_status == GameStatus.OVER:
        print("No more moves possible. Better luck next time!")
    return model


# --- Display Function (Example of external usage) ---
def render_board(model: Model, config: GameConfig) -> str:
    """Formats the board as tab-separated rows, '.' for an empty cell."""
    lines = []
    for row in tiles_to_matrix(model.tiles, config):
        lines.append("\t".join('.' if tile is None else str(tile.value) for tile in row))
    return "\n".join(lines)


def display_model(model: Model, config: GameConfig):
    """Prints the board, score, and game status to the console."""
    print(f"\nScore: {model.score}\tBest: {model.best_score}")
    status_message = {
        GameStatus.PLAYING: f"Status: {model.game_status.name}",
        GameStatus.CONTINUE: f"Status: {model.game_status.name}",
        GameStatus.WON: "YOU WON!",
        GameStatus.OVER: "GAME OVER!"
    }
    print(status_message[model.game_status])
    print(render_board(model, config))
    print("-" * (config.grid_size * 6)) # Adjust width based on board size

if __name__ == "__main__":
    main()
