"""
Spectrum generation workflows.

This module provides the generation half of a run:
1. generate_spectra: Sample N decays, fill E_e and E_e_sm
2. generate_spectra_in_run: Same, attached to a SimulationRun
3. store_spectra_in_run: Write both histograms to <output_dir>/<basename>.npz

With n_workers > 1 the events are split over worker processes, each with an
independent random stream spawned from the run seed, and the partial
histograms are summed.
"""

import multiprocessing as mp
from dataclasses import replace
from typing import Dict, Optional, Tuple
import numpy as np

from NuMass.core.config import PhysicalParameters, SamplingConfig, SamplingWindow
from NuMass.core.datatypes import GenerationSummary, Histogram, SamplingStall, SimulationRun
from NuMass.core.dataIO import save_spectra
from NuMass.spectrum.sampling import SamplingStallError, check_envelope, make_rng, sample_energies
from NuMass.spectrum.histogramming import fill_spectra, merge_histograms, new_spectra


# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def _progress_printer(n_events: int, every: float = 0.01, rule_every: int = 10):
    """
    Callback printing a line for each further 1% of accepted events and a
    separator after every 10%.
    """
    step = max(int(n_events * every), 1)
    state = {'next': step, 'lines': 0}

    def report(n_done: int) -> None:
        while n_done >= state['next'] and state['next'] <= n_events:
            print(f"    {100 * state['next'] / n_events:5.1f}%  ({state['next']:,} / {n_events:,} events)")
            state['lines'] += 1
            if state['lines'] % rule_every == 0:
                print("    " + "-"*40)
            state['next'] += step

    return report


def _fill_chunk(rng: np.random.Generator,
                physics: PhysicalParameters,
                sampling: SamplingConfig,
                window: SamplingWindow,
                n_events: int,
                verbose: bool) -> Tuple[Histogram, Histogram, int, Optional[SamplingStall]]:
    """
    Generate n_events into a fresh pair of histograms.

    Samples are drawn and filled batch by batch so memory stays bounded by
    batch_size. A stall keeps every sample accepted before it, including
    those of the batch that stalled.
    """
    true_hist, smeared_hist = new_spectra(window, sampling.nbins)
    report = _progress_printer(n_events) if verbose else None

    n_done = 0
    n_candidates = 0
    while n_done < n_events:
        n_batch = min(sampling.batch_size, n_events - n_done)
        try:
            samples, used = sample_energies(rng, physics, window, sampling.envelope_h, n_batch,
                                            batch_size=sampling.batch_size,
                                            max_attempts=sampling.max_attempts)
        except SamplingStallError as e:
            fill_spectra(true_hist, smeared_hist, e.samples, rng,
                         sampling.resolution, sampling.smear_policy)
            stall = replace(e.stall, n_accepted=n_done + len(e.samples))
            return true_hist, smeared_hist, n_candidates + e.n_candidates, stall

        fill_spectra(true_hist, smeared_hist, samples, rng,
                     sampling.resolution, sampling.smear_policy)
        n_done += n_batch
        n_candidates += used
        if report is not None:
            report(n_done)

    return true_hist, smeared_hist, n_candidates, None


def _generate_chunk(args) -> Tuple[Histogram, Histogram, int, Optional[SamplingStall]]:
    """Worker entry point (must be module level to be picklable)."""
    seed_seq, physics, sampling, window, n_events = args
    rng = np.random.default_rng(seed_seq)
    return _fill_chunk(rng, physics, sampling, window, n_events, verbose=False)


def _split_events(n_events: int, n_workers: int) -> list[int]:
    base, rest = divmod(n_events, n_workers)
    return [base + (1 if i < rest else 0) for i in range(n_workers)]


# ============================================================================
# GENERATION
# ============================================================================

def generate_spectra(physics: PhysicalParameters,
                     sampling: SamplingConfig = SamplingConfig(),
                     verbose: bool = True) -> Tuple[Dict[str, Histogram], GenerationSummary]:
    """
    Generate the true and smeared spectra.

    Workflow:
    1. Build the sampling window and check the envelope against the density maximum
    2. Draw n_events accepted energies (serial or across worker processes)
    3. Fill E_e with each sample and E_e_sm with its Gaussian-smeared value

    Args:
        physics: Decay constants (including the true m_nu)
        sampling: Generation parameters (n_events, resolution, h, window, seed ...)
        verbose: Print progress

    Returns:
        ({"E_e": Histogram, "E_e_sm": Histogram}, GenerationSummary).
        On a sampling stall the histograms hold what was accepted before it and
        summary.stall describes the failure.
    """
    window = sampling.window(physics)
    rng, seed = make_rng(sampling.seed)

    ratio = check_envelope(physics, window, sampling.envelope_h)
    if verbose:
        print(f"  • Window: ({window.limit:.3f}, {window.Q:.3f}) eV, {sampling.nbins} bins")
        print(f"  • Seed: {seed}")
        print(f"  • Envelope ratio max N / M = {ratio:.3g}")
    if ratio > 1:
        print(f"  ⚠ Envelope below the density maximum (ratio {ratio:.3g}): "
              f"spectrum will be truncated, increase envelope_h")

    if sampling.n_workers > 1 and sampling.n_events >= sampling.n_workers:
        true_hist, smeared_hist, n_candidates, stall = _generate_parallel(
            physics, sampling, window, seed, verbose)
    else:
        true_hist, smeared_hist, n_candidates, stall = _fill_chunk(
            rng, physics, sampling, window, sampling.n_events, verbose)

    n_accepted = int(round(true_hist.entries))
    if stall is not None:
        print(f"  ⚠ Sampling stalled after {n_accepted:,} events: {stall}")
    elif verbose:
        print(f"  ✓ Generated {n_accepted:,} events from {n_candidates:,} candidates "
              f"(efficiency {n_accepted / max(n_candidates, 1):.3%})")

    summary = GenerationSummary(n_events=n_accepted,
                                n_candidates=n_candidates,
                                seed=seed,
                                envelope_ratio=ratio,
                                stall=stall)
    return {true_hist.name: true_hist, smeared_hist.name: smeared_hist}, summary


def _generate_parallel(physics: PhysicalParameters,
                       sampling: SamplingConfig,
                       window: SamplingWindow,
                       seed: int,
                       verbose: bool):
    """Split events over a process pool and merge the partial histograms."""
    streams = np.random.SeedSequence(seed).spawn(sampling.n_workers)
    chunks = _split_events(sampling.n_events, sampling.n_workers)
    tasks = [(s, physics, sampling, window, n) for s, n in zip(streams, chunks)]

    if verbose:
        print(f"  • Running {sampling.n_workers} workers ({chunks[0]:,} events each)")

    with mp.Pool(processes=sampling.n_workers) as pool:
        parts = pool.map(_generate_chunk, tasks)

    true_hist = merge_histograms(p[0] for p in parts)
    smeared_hist = merge_histograms(p[1] for p in parts)
    n_candidates = sum(p[2] for p in parts)
    stall = next((p[3] for p in parts if p[3] is not None), None)
    return true_hist, smeared_hist, n_candidates, stall


# ============================================================================
# RUN-LEVEL WORKFLOWS
# ============================================================================

def generate_spectra_in_run(run: SimulationRun, verbose: bool = True) -> SimulationRun:
    """
    Generate spectra for a run and attach them.

    Returns:
        Run with .spectra and .generation filled
    """
    print("\n[1/2] Generating beta spectra...")
    print(f"  • Q = {run.physics.Q:.3f} eV, m_nu = {run.physics.m_nu} eV, "
          f"N = {run.sampling.n_events:,}, resolution = {run.sampling.resolution} eV")

    spectra, summary = generate_spectra(run.physics, run.sampling, verbose=verbose)
    return replace(run, spectra=spectra, generation=summary)


def generation_metadata(run: SimulationRun) -> dict:
    """Run information stored with the histograms."""
    meta = {
        'run_id': run.run_id,
        'Q': run.physics.Q,
        'm_nu': run.physics.m_nu,
        'Z_1': run.physics.Z_1,
        'Z_2': run.physics.Z_2,
        'charge': run.physics.charge,
        'fermi_Z': run.physics.fermi_Z,
        'n_events_requested': run.sampling.n_events,
        'resolution': run.sampling.resolution,
        'envelope_h': run.sampling.envelope_h,
        'smear_policy': run.sampling.smear_policy,
        'n_workers': run.sampling.n_workers,
    }
    if run.generation is not None:
        g = run.generation
        meta.update({
            'seed': g.seed,
            'n_events': g.n_events,
            'n_candidates': g.n_candidates,
            'envelope_ratio': g.envelope_ratio,
            'stalled': not g.success,
        })
    return meta


def store_spectra_in_run(run: SimulationRun) -> SimulationRun:
    """
    Persist the run's spectra.

    Side Effects:
        Creates: <output_dir>/<basename>.npz
    """
    if not run.spectra:
        raise RuntimeError("Run has no spectra - run generate_spectra_in_run first")
    if run.generation is not None and not run.generation.success:
        print(f"  ⚠ Generation stalled, nothing written to {run.container}.npz")
        return run

    path = save_spectra(run.container, run.spectra, metadata=generation_metadata(run))
    print(f"  💾 Saved {len(run.spectra)} histograms to {path}")
    return run
