#!/usr/bin/env python3
"""
RUN_CANTILEVER_3D: Hand-Check of the 3D Frame Engine
====================================================

A 3 m steel cantilever along X, fixed at the origin, loaded at the tip
in -Z and +Y at the same time. Each load bends the member about a
different local axis, so the tip deflections can be checked against

    δ = P·L³ / (3·E·I)

with Iy for the Z load and Iz for the Y load.

Run with:
    python demos/run_cantilever_3d.py
"""

import logging
import sys
from pathlib import Path

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from frame_engine import analyze


def print_header(text: str):
    """Print a formatted section header."""
    print("\n" + "=" * 60)
    print(f"  {text}")
    print("=" * 60)


def main():
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    L = 3.0        # m
    E = 210e9      # Pa
    fy = 250e6     # Pa
    w, h = 0.1, 0.2
    Pz, Py = -10_000.0, 2_000.0

    print_header("3D CANTILEVER")
    print(f"\n  Length {L} m, section {w * 1000:.0f} × {h * 1000:.0f} mm, E = {E / 1e9:.0f} GPa")
    print(f"  Tip loads: Fz = {Pz / 1000:.1f} kN, Fy = {Py / 1000:.1f} kN")

    structure = {
        'nodes': [
            {'id': 'root', 'x': 0.0, 'y': 0.0, 'z': 0.0,
             'supports': {k: True for k in ('ux', 'uy', 'uz', 'rx', 'ry', 'rz')}},
            {'id': 'tip', 'x': L, 'y': 0.0, 'z': 0.0},
        ],
        'elements': [{
            'id': 'cantilever',
            'kind': 'beam',
            'nodeIds': ['root', 'tip'],
            'material': {'elasticModulus': E, 'yieldStrength': fy},
            'section': {'kind': 'rectangular', 'width': w, 'height': h},
        }],
        'loads': [
            {'kind': 'point', 'nodeId': 'tip', 'axis': 'z', 'magnitude': Pz},
            {'kind': 'point', 'nodeId': 'tip', 'axis': 'y', 'magnitude': Py},
        ],
    }

    result = analyze(structure, {'enableProfiling': True})

    # =========================================================================
    # DISPLACEMENTS vs HAND CALCULATION
    # =========================================================================
    print_header("TIP DISPLACEMENT")
    Iy = w * h**3 / 12
    Iz = h * w**3 / 12
    tip = result.displacement('tip')
    for label, fem, hand in [
        ("uz", tip.uz, Pz * L**3 / (3 * E * Iy)),
        ("uy", tip.uy, Py * L**3 / (3 * E * Iz)),
    ]:
        error = abs(fem - hand) / abs(hand) * 100
        print(f"  {label}: FEM {fem * 1000:9.4f} mm   hand {hand * 1000:9.4f} mm   error {error:.2e} %")

    # =========================================================================
    # MEMBER RESULTS
    # =========================================================================
    print_header("MEMBER RESULTS (governing end)")
    forces = result.forces_for('cantilever')
    stress = result.stress_for('cantilever')
    print(f"  My = {forces.moment_y / 1000:8.2f} kNm   Mz = {forces.moment_z / 1000:8.2f} kNm")
    print(f"  σ_by = {stress.bending_stress_y / 1e6:7.1f} MPa   σ_bz = {stress.bending_stress_z / 1e6:7.1f} MPa")
    print(f"  σ_combined = {stress.combined_stress / 1e6:7.1f} MPa "
          f"(allowable {stress.allowable_stress / 1e6:.1f} MPa)")
    print(f"  Utilization {stress.utilization:.2f} -> {'SAFE' if stress.is_safe else 'UNSAFE'}")

    print_header("REACTIONS")
    for r in result.reactions:
        print(f"  {r.node_id}: Fy = {r.fy / 1000:7.2f} kN  Fz = {r.fz / 1000:7.2f} kN  "
              f"My = {r.my / 1000:7.2f} kNm  Mz = {r.mz / 1000:7.2f} kNm")

    print_header("PERFORMANCE")
    perf = result.performance
    print(f"  {perf.method} on {perf.matrix_format} storage, total {perf.total_time_ms:.2f} ms")
    for stage, ms in perf.profile.items():
        print(f"    {stage:<20s} {ms:8.3f} ms")


if __name__ == "__main__":
    main()
