#!/usr/bin/env python3
"""
instanton_lab.py

Headless driver for the instanton growth lab. Reads a JSON parameter file,
places the configured seeds, evolves the field and renders the result:
red = field φ, green = gradient magnitude, blue = potential, with the
placed instantons overlaid as yellow markers.
"""

import argparse
import copy
import json
import time
from pathlib import Path

import numpy as np
import matplotlib.pyplot as plt
import matplotlib.animation as animation
from tqdm import tqdm

from field_grid import create_grid, place_seed
from integrator import DivergencePolicy, field_energy, step
from potential_field import PotentialFamily
from seed_profile import SeedShape

DEFAULT_PARAMS = {
    'width': 400,
    'height': 300,
    'field_type': 'mexican_hat',
    'noise_level': 0.1,
    'dt': 0.02,
    'n_steps': 2000,
    'output_every': 20,
    'shape': 'gaussian',
    # pointer-style placements, fractions of the canvas in [0, 1)
    'seeds': [[0.5, 0.5]],
    'rng_seed': None,
    'on_divergence': 'warn',
    'clamp_limit': 1e6,
    'output_dir': 'instanton_output',
    'output_gif': 'field_evolution.gif',
}


def load_params(fname=None):
    """Load a JSON parameter file merged over DEFAULT_PARAMS."""
    params = copy.deepcopy(DEFAULT_PARAMS)
    if fname is None:
        return params

    with open(fname) as f:
        user = json.load(f)

    unknown = sorted(set(user) - set(DEFAULT_PARAMS))
    if unknown:
        raise ValueError(f"Unknown parameters in {fname}: {', '.join(unknown)}")
    params.update(user)
    return params


def pointer_to_cell(u, v, width, height):
    """Map a fractional canvas position to grid indices."""
    return int(np.floor(u * width)), int(np.floor(v * height))


def _normalize(a):
    lo, hi = np.min(a), np.max(a)
    if hi > lo:
        return (a - lo) / (hi - lo)
    return np.zeros_like(a)


def field_to_rgb(grid):
    """Composite image of shape (height, width, 3) with values in [0, 1]."""
    red = _normalize(grid.phi)
    green = np.minimum(grid.gradient * 5, 1.0)
    blue = _normalize(grid.potential)
    # grid arrays are [i, j]; images are [row=j, col=i]
    return np.stack([red, green, blue], axis=-1).transpose(1, 0, 2)


def run_simulation(params, rng=None, progress=True):
    """
    Build a grid from `params`, place seeds and evolve

    Returns:
    --------
    grid, times, energies, frames
    """
    width, height = params['width'], params['height']
    dt = params['dt']
    noise = params['noise_level']
    policy = DivergencePolicy.coerce(params['on_divergence'])
    output_every = max(1, int(params['output_every']))

    grid = create_grid(width, height, family=params['field_type'], seed=params['rng_seed'])
    if rng is not None:
        grid.rng = rng

    for u, v in params['seeds']:
        cx, cy = pointer_to_cell(u, v, width, height)
        place_seed(grid, params['shape'], cx, cy)

    times = [grid.time]
    energies = [field_energy(grid, dt)[0]]
    frames = [field_to_rgb(grid)]

    for n in tqdm(range(params['n_steps']), desc="Evolving", disable=not progress):
        step(grid, dt, noise, on_divergence=policy, clamp_limit=params['clamp_limit'])
        if (n + 1) % output_every == 0:
            times.append(grid.time)
            energies.append(field_energy(grid, dt)[0])
            frames.append(field_to_rgb(grid))

    if params['n_steps'] % output_every != 0:
        times.append(grid.time)
        energies.append(field_energy(grid, dt)[0])
        frames.append(field_to_rgb(grid))

    return grid, np.array(times), np.array(energies), frames


# --- Output ---

def save_frame(grid, path):
    """Render the composite image with instanton markers."""
    fig, ax = plt.subplots(figsize=(8, 8 * grid.height / grid.width))
    ax.imshow(field_to_rgb(grid), origin='upper', interpolation='nearest')
    for inst in grid.instantons:
        ax.scatter(inst.center_x, inst.center_y, s=30, c='#FFFF00',
                   edgecolors='#FFFFFF', linewidths=1)
    ax.set_xlim(-0.5, grid.width - 0.5)
    ax.set_ylim(grid.height - 0.5, -0.5)
    family = grid.family.value if grid.family is not None else 'none'
    ax.set_title(f'{family}  t = {grid.time:.2f}  step {grid.step_count}')
    ax.axis('off')
    fig.savefig(path, dpi=100, bbox_inches='tight')
    plt.close(fig)


def save_energy_plot(times, energies, path):
    fig, ax = plt.subplots()
    ax.plot(times, energies, '-o', markersize=3)
    drift = energies[-1] - energies[0]
    ax.set_xlabel('Time')
    ax.set_ylabel('Field Energy')
    ax.set_title(f'Energy Drift = {drift:.2e}')
    ax.grid(True, alpha=0.3)
    fig.savefig(path, dpi=150)
    plt.close(fig)


def save_animation(frames, times, path):
    fig, ax = plt.subplots()
    im = ax.imshow(frames[0], origin='upper', interpolation='nearest')
    ax.axis('off')
    ax.set_title(f'Time = {times[0]:.2f}')

    def update(i):
        im.set_data(frames[i])
        ax.set_title(f'Time = {times[i]:.2f}')
        return [im]

    ani = animation.FuncAnimation(fig, update, frames=len(frames), interval=50)
    ani.save(path, writer='pillow')
    plt.close(fig)


def build_parser():
    parser = argparse.ArgumentParser(description="Evolve instantons in a 2D nonlinear scalar field.")
    parser.add_argument('--config', type=str, help='Path to the JSON parameter file.')
    parser.add_argument('--field-type', type=str, choices=[f.value for f in PotentialFamily],
                        help='Override the potential family.')
    parser.add_argument('--shape', type=str, choices=[s.value for s in SeedShape],
                        help='Override the seed shape.')
    parser.add_argument('--noise', type=float, help='Override the noise level.')
    parser.add_argument('--dt', type=float, help='Override the time step (growth rate).')
    parser.add_argument('--steps', type=int, help='Override the number of steps.')
    parser.add_argument('--seed', type=int, help='Seed for the noise generator.')
    parser.add_argument('--on-divergence', type=str, choices=[p.value for p in DivergencePolicy],
                        help='What to do when the field stops being finite.')
    parser.add_argument('--output-dir', type=Path, help='Where to write images.')
    parser.add_argument('--no-animation', action='store_true', help='Skip the GIF.')
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    p = load_params(args.config)

    overrides = {
        'field_type': args.field_type,
        'shape': args.shape,
        'noise_level': args.noise,
        'dt': args.dt,
        'n_steps': args.steps,
        'rng_seed': args.seed,
        'on_divergence': args.on_divergence,
        'output_dir': args.output_dir,
    }
    p.update({k: v for k, v in overrides.items() if v is not None})

    output_dir = Path(p['output_dir'])
    output_dir.mkdir(parents=True, exist_ok=True)

    print("=== Instanton Growth Lab ===")
    print(f"Grid: {p['width']}x{p['height']}, potential={p['field_type']}, shape={p['shape']}")
    print(f"dt={p['dt']}, noise={p['noise_level']}, n_steps={p['n_steps']}, "
          f"on_divergence={p['on_divergence']}")

    start = time.time()
    grid, times, energies, frames = run_simulation(p)
    elapsed = time.time() - start

    save_frame(grid, output_dir / 'final_field.png')
    save_energy_plot(times, energies, output_dir / 'energy.png')
    if not args.no_animation:
        save_animation(frames, times, output_dir / p['output_gif'])

    drift = energies[-1] - energies[0]
    rel_drift = abs(drift / energies[0]) if energies[0] != 0 else 0.0
    print(f"Finished {grid.step_count} steps (t={grid.time:.2f}) in {elapsed:.1f}s")
    print(f"Seeds placed: {len(grid.instantons)}")
    print(f"Energy drift: {drift:.2e} (relative: {rel_drift:.2e})")
    if not np.all(np.isfinite(grid.phi)):
        print("WARNING: field contains non-finite values")
    print(f"Images saved in {output_dir}")
    return grid


if __name__ == '__main__':
    main()
