"""Drive terrain generation from a pyglet clock, one emission batch per tick."""
import pyglet

import logutil


def schedule_generation(service, clock=None, interval=None):
    """
    Schedule `service` on `clock` (pyglet's default clock if None). Each call
    resumes generation for one batch, so the window's own update and draw
    callbacks run between batches. Unschedules itself once the run finishes.
    Returns the scheduled callback.
    """
    clock = pyglet.clock.get_default() if clock is None else clock
    steps = service.steps()

    def step_generation(dt):
        try:
            columns = next(steps)
        except StopIteration:
            clock.unschedule(step_generation)
            logutil.log("CLOCK", f"generation finished in state {service.state}", level="DEBUG")
            return
        logutil.log("CLOCK", f"batch done columns={columns} dt_ms={dt*1000.0:.2f}", level="DEBUG")

    if interval is None:
        clock.schedule(step_generation)
    else:
        clock.schedule_interval(step_generation, interval)
    return step_generation
