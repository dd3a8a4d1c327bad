#!/usr/bin/env python3
"""
Run simulation script - Generate and/or fit beta spectra from a config file.

This script loads a YAML configuration file and runs the generation pipeline
(sampling → E_e / E_e_sm histograms → <basename>.npz) and the analysis
pipeline (load → fit m_nu → summary).

Usage:
    # Generate and analyze
    python scripts/run_simulation.py path/to/config.yaml

    # Only generation (writes the spectrum container)
    python scripts/run_simulation.py path/to/config.yaml --generate-only

    # Only analysis (reads an existing container)
    python scripts/run_simulation.py path/to/config.yaml --analyze-only --plot

Example:
    python scripts/run_simulation.py configs/tritium_katrin.yaml --seed 42
"""

import argparse
import sys
from pathlib import Path
from datetime import datetime

from NuMass.core.config import ConfigurationError
from NuMass.core.dataIO import PersistenceError
from NuMass.workflows.run_construction import load_config, create_run_from_config
from NuMass.pipelines.simulation import generation_pipeline, analysis_pipeline


def main():
    parser = argparse.ArgumentParser(
        description='Run NuMass beta spectrum simulation',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )
    parser.add_argument('config', type=Path, help='Path to YAML config file')
    parser.add_argument('--generate-only', action='store_true',
                        help='Only generate and store the spectra')
    parser.add_argument('--analyze-only', action='store_true',
                        help='Only fit stored spectra (assumes generation done)')
    parser.add_argument('--plot', action='store_true',
                        help='Save spectrum and fit plots')
    parser.add_argument('--seed', type=int, default=None,
                        help='Random seed (overrides sampling.seed)')
    parser.add_argument('--basename', type=str, default=None,
                        help='Container base name (overrides output.basename)')

    args = parser.parse_args()

    if args.generate_only and args.analyze_only:
        parser.error("Cannot specify both --generate-only and --analyze-only")

    stages = {
        'generation': not args.analyze_only,
        'analysis': not args.generate_only,
    }

    # Load configuration
    print(f"Loading configuration from {args.config}")
    try:
        config = load_config(args.config)
        run = create_run_from_config(config, seed=args.seed, basename=args.basename)
    except ConfigurationError as e:
        print(f"✗ Invalid configuration: {e}")
        sys.exit(2)

    # Log start
    timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    print(f"\n{'='*60}")
    print(f"STARTING SIMULATION: {run.run_id}")
    print(f"Time: {timestamp}")
    print(f"Config: {args.config}")
    print(f"Description: {run.description or 'N/A'}")
    print(f"{'='*60}\n")

    # ========================================================================
    # GENERATION STAGE
    # ========================================================================
    if stages['generation']:
        run = generation_pipeline(run, plot=args.plot)

        if run.generation is not None and not run.generation.success:
            print("\n✗ Generation stalled, see diagnostic above")
            sys.exit(1)

        print("\n✓ Generation complete")

    # ========================================================================
    # ANALYSIS STAGE
    # ========================================================================
    if stages['analysis']:
        try:
            run = analysis_pipeline(run, plot=args.plot)
        except PersistenceError as e:
            print(f"\n✗ {e}")
            print("  Run with --generate-only first to create the spectrum container.")
            sys.exit(1)

        n_failed = sum(not r.success for r in run.fit_results.values())
        if n_failed:
            print(f"\n⚠ {n_failed} fit(s) did not converge")
        else:
            print("\n✓ Analysis complete")

    print(f"\n{'='*60}")
    print(f"SIMULATION COMPLETE: {run.run_id}")
    print(f"{'='*60}")


if __name__ == '__main__':
    main()
