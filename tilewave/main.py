import argparse
import logging
from pathlib import Path

from tilewave.config import FPS, HUD_HEIGHT, TILE_SIZE, get_logger, log_memory_usage
from tilewave.wfc import ContradictionError, MapConfig, TileMap

# Largest window side the preview will open with
PREVIEW_MAX_SIDE = 1024


def preview_tile_size(config: MapConfig) -> int:
    """Tile size that keeps the preview window within PREVIEW_MAX_SIDE."""
    return max(4, min(TILE_SIZE, PREVIEW_MAX_SIDE // max(config.width, config.height)))


class Game:
    def __init__(self, config: MapConfig, tileset_path=None):
        # ---------------------------
        # LAZY IMPORTS
        # ---------------------------
        import pygame
        import pygame_gui
        from tilewave.ui.hud import MapHud
        from tilewave.ui.renderer import MapRenderer

        self.logger = get_logger(__name__)
        self.logger.info("=" * 60)
        self.logger.info("Preview initialization started")

        pygame.init()

        # ---------------------------
        # MAP + RENDERER
        # ---------------------------
        self.tile_map = TileMap.from_config(config)
        self.renderer = MapRenderer(tileset_path=tileset_path)
        self.tile_size = preview_tile_size(config)

        # ---------------------------
        # SCREEN INIT
        # ---------------------------
        self.map_width = config.width * self.tile_size
        self.map_height = config.height * self.tile_size
        self.screen_width = self.map_width
        self.screen_height = self.map_height + HUD_HEIGHT

        self.logger.info(f"Window size: {self.screen_width}x{self.screen_height}, tile size {self.tile_size}px")

        self.screen = pygame.display.set_mode((self.screen_width, self.screen_height))
        pygame.display.set_caption("tilewave")

        self.clock = pygame.time.Clock()
        self.running = True

        # ---------------------------
        # HUD
        # ---------------------------
        self.manager = pygame_gui.UIManager((self.screen_width, self.screen_height))
        self.hud = MapHud(
            self.manager,
            pygame.Rect(0, self.map_height, self.screen_width, HUD_HEIGHT),
        )

        # cached map drawing, rebuilt only when the map changes
        self.map_surface = None
        self.dirty = True

        self.regenerate()
        self.logger.info("Preview initialization completed successfully")

    # ---------------------------
    # ACTIONS
    # ---------------------------
    def regenerate(self):
        try:
            self.tile_map.generate()
        except ContradictionError as e:
            self.logger.error(f"Generation failed: {e}")
        self.hud.set_status(self.tile_map.get_statistics())
        log_memory_usage(self.logger, "After generation")
        self.dirty = True

    def clear(self):
        self.tile_map.clear()
        self.hud.set_status(self.tile_map.get_statistics())
        self.dirty = True

    def draw(self):
        import pygame
        from tilewave.ui.theme import UITheme

        if self.dirty:
            surface = self.renderer.render(self.tile_map)
            if surface.get_size() != (self.map_width, self.map_height):
                surface = pygame.transform.scale(surface, (self.map_width, self.map_height))
            self.map_surface = surface
            self.dirty = False

        self.screen.fill(UITheme.PRIMARY)
        self.screen.blit(self.map_surface, (0, 0))
        self.manager.draw_ui(self.screen)

    async def main_loop(self):
        import asyncio
        import pygame

        self.logger.info("Entering preview loop")
        frame_count = 0

        while self.running:
            dt = self.clock.tick(FPS) / 1000.0
            frame_count += 1

            for event in pygame.event.get():
                if event.type == pygame.QUIT:
                    self.logger.info("Quit event received")
                    self.running = False
                    continue
                if event.type == pygame.KEYDOWN and event.key == pygame.K_ESCAPE:
                    self.logger.info("Escape pressed, closing preview")
                    self.running = False
                    continue

                action = self.hud.process_event(event)
                if action == "regenerate":
                    self.regenerate()
                elif action == "clear":
                    self.clear()

            self.manager.update(dt)

            self.draw()
            pygame.display.flip()
            await asyncio.sleep(0)

        self.logger.info(f"Preview loop exited after {frame_count} frames")


# ------------------------ # HEADLESS EXPORT # ------------------------

def export_png(config: MapConfig, path, tileset_path=None) -> Path:
    """Generate one map and write it to ``path`` without opening a window."""
    from tilewave.ui.renderer import MapRenderer

    logger = get_logger(__name__)
    tile_map = TileMap.from_config(config)
    tile_map.generate()

    renderer = MapRenderer(tileset_path=tileset_path)
    saved = renderer.save(renderer.render(tile_map), path)
    logger.info(f"Exported {config.width}x{config.height} map: {tile_map.get_statistics()['types']}")
    return saved


# ------------------------ # ENTRY POINT # ------------------------

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="tilewave", description="Wave function collapse tile map generator")
    defaults = MapConfig()
    parser.add_argument("--width", type=int, default=defaults.width)
    parser.add_argument("--height", type=int, default=defaults.height)
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--rules", type=Path, default=None, help="JSON rule file (default: bundled rules)")
    parser.add_argument("--attempts", type=int, default=defaults.max_attempts,
                        help="regenerate up to this many times on contradictions")
    parser.add_argument("--tileset", type=Path, default=None, help="tileset image; flat colours if omitted")
    parser.add_argument("--export", type=Path, default=None, help="write a PNG and exit")
    parser.add_argument("--log-dir", type=Path, default=Path.cwd())
    parser.add_argument("--quiet", action="store_true", help="log INFO and above only")
    return parser


def config_from_args(args) -> MapConfig:
    config = MapConfig(
        width=args.width,
        height=args.height,
        seed=args.seed,
        rules_path=args.rules,
        max_attempts=args.attempts,
    )
    config.validate()
    return config


def run(argv=None):
    import asyncio
    from tilewave.config import setup_logging

    args = build_parser().parse_args(argv)
    logger = setup_logging(args.log_dir, logging.INFO if args.quiet else logging.DEBUG)

    logger.info("=" * 60)
    logger.info("Application started")

    try:
        config = config_from_args(args)

        if args.export is not None:
            export_png(config, args.export, tileset_path=args.tileset)
            return

        async def main():
            import pygame

            game = Game(config, tileset_path=args.tileset)
            await game.main_loop()

            logger.info("Shutting down pygame...")
            pygame.quit()

        asyncio.run(main())

    except Exception as e:
        logger.critical(f"Critical error in main: {e}", exc_info=True)
        raise
    finally:
        logger.info("Application terminated")
        logger.info("=" * 60)


if __name__ == "__main__":
    run()
