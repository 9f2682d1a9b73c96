# main.py

import pygame
import constants
import json
import logging
import logger_setup
import numpy as np
from controls import bind_engine
from relaxation import RelaxationEngine

# Get the application's dedicated logger
logger = logging.getLogger("vector_relax")

import cProfile, pstats

# Key -> (control name, steps). Shift multiplies the step by ten.
KEY_BINDINGS = {
    pygame.K_UP: ('point_count', 10),
    pygame.K_DOWN: ('point_count', -10),
    pygame.K_RIGHT: ('min_distance', 1),
    pygame.K_LEFT: ('min_distance', -1),
    pygame.K_PAGEUP: ('speed', 1),
    pygame.K_PAGEDOWN: ('speed', -1),
    pygame.K_EQUALS: ('circle_radius', 1),
    pygame.K_MINUS: ('circle_radius', -1),
    pygame.K_e: ('expand', 1),
}


def handle_event(event, engine, controls):
    """
    Routes one pygame event to the engine or control panel.
    Returns False when the application should stop.
    """
    if event.type == pygame.QUIT:
        return False

    if event.type == pygame.MOUSEBUTTONDOWN and event.button == 1:
        engine.repulsor.move_to(*event.pos)
        engine.repulsor.toggle()
    elif event.type == pygame.MOUSEMOTION:
        engine.repulsor.move_to(*event.pos)
    elif event.type == pygame.VIDEORESIZE:
        engine.resize(event.w, event.h)
    elif event.type == pygame.KEYDOWN:
        if event.key == pygame.K_ESCAPE:
            return False
        binding = KEY_BINDINGS.get(event.key)
        if binding is not None:
            name, steps = binding
            if event.mod & pygame.KMOD_SHIFT:
                steps *= 10
            controls.nudge(name, steps)
            logger.info(" | ".join(controls.describe()))
    return True


def run_simulation_loop(engine, controls, screen, clock, max_ticks=None):
    """
    The main frame loop: events, one engine tick, drawing.
    Stops on quit, or after `max_ticks` ticks when given.
    """
    running = True
    tick = 0

    while running and (max_ticks is None or tick < max_ticks):
        # Event handling
        for event in pygame.event.get():
            if not handle_event(event, engine, controls):
                running = False
            elif event.type == pygame.VIDEORESIZE:
                # The engine has clamped the size; keep the window on the same domain
                width, height = (int(v) for v in engine.bounds)
                screen = pygame.display.set_mode((width, height), pygame.RESIZABLE)

        # --- Physics & Logic Update ---
        # clock.tick returns milliseconds since the previous frame
        delta_time = clock.tick(constants.FPS) / 1000.0
        engine.tick(delta_time)

        # --- Drawing ---
        screen.fill(constants.BLACK)
        engine.draw(screen)
        pygame.display.flip()
        tick += 1

    return tick


def main():
    """
    Main function to initialize and run the relaxation simulation.
    When profiling is enabled in the config, the loop runs for a fixed number
    of ticks under cProfile.
    """
    # --- Setup ---
    logger_setup.setup_logging()

    with open('config.json', 'r') as f:
        config = json.load(f)
    sim_config = config['simulation']
    profiling = config.get('profiling', {})

    logger.info("Application starting...")
    logger.info(f"Loaded configuration: {config}")

    # Initialize the master random number generator (RNG)
    rng = np.random.default_rng(config['master_seed'])
    logger.info(f"Master RNG initialized with seed: {config['master_seed']}")

    # --- Initialization ---
    pygame.init()
    screen = pygame.display.set_mode((constants.WIDTH, constants.HEIGHT), pygame.RESIZABLE)
    pygame.display.set_caption(constants.TITLE)
    clock = pygame.time.Clock()

    engine = RelaxationEngine(
        config=sim_config,
        rng=rng,
        bounds=(constants.WIDTH, constants.HEIGHT)
    )
    controls = bind_engine(engine)
    logger.info(" | ".join(controls.describe()))

    if profiling.get('enabled', False):
        profiler = cProfile.Profile()
        profiler.enable()

        run_simulation_loop(engine, controls, screen, clock, max_ticks=profiling.get('ticks', 1000))

        profiler.disable()
        logger.info("Profiling complete. Printing stats...")
        stats = pstats.Stats(profiler).sort_stats('cumtime')
        stats.print_stats(20) # Print the top 20 time-consuming functions
    else:
        run_simulation_loop(engine, controls, screen, clock)

    logger.info("Application shutting down.")
    pygame.quit()

if __name__ == "__main__":
    main()
