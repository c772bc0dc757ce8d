"""
MARGINS OF ERROR IN MAPS AND REGRESSIONS -- A VISUAL PRIMER
===========================================================

Survey-based census estimates (ACS income, schooling, ...) come with a
margin of error. This script walks through what that margin means for
two everyday uses of the numbers -- choropleth maps and bivariate
regressions -- printing each section's text, rendering its figure, and
combining everything into a PDF.

Sections
--------
  1.  Margins of error and standard errors
  2.  Choropleth classes
  3.  Hatching ambiguous class assignments
  4.  Regression with uncertain estimates
  5.  Bounded normal resampling
  6.  Monte Carlo regression envelope

Usage
-----
    python margin_of_error_primer.py                       # simulated counties
    python margin_of_error_primer.py --shapefile counties.zip
    python margin_of_error_primer.py --trials 2000 --seed 7 --no-pdf
"""

import argparse
import os

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np

from moeprimer import envelope as m_env
from moeprimer import maps
from moeprimer import moe as m_moe
from moeprimer import regression as m_reg
from moeprimer import sampler as m_samp
from moeprimer.data import estimate_summary, load_data
from moeprimer.report import build_pdf, savefig

OUTDIR = os.path.dirname(os.path.abspath(__file__))
K = m_moe.Z90
SCALE = 100  # schooling share -> percentage points


# =============================================================================
# 1. MoE and SE
# =============================================================================
def section_moe(gdf, outdir):
    text = """\
Section 1: Margins of Error and Standard Errors

What is published
Every ACS estimate x is released with a margin of error (MoE): the
half-width of a 90% confidence interval. The underlying standard error
follows from the normal approximation:
  SE  = MoE / 1.645
  90% CI = [x - 1.645*SE, x + 1.645*SE]

The coefficient of variation CV = SE / x puts errors on a common scale.
A common reliability rule of thumb grades estimates as
  high    CV < 12%
  medium  12% <= CV <= 40%
  low     CV > 40%

Why small areas suffer
The ACS samples a fixed fraction of addresses, so the number of
completed interviews in a county scales with its population. Sparsely
populated counties get few interviews and wide intervals -- often wide
enough that their estimate is statistically indistinguishable from
most other counties.
"""
    cv_inc = m_moe.coefficient_of_variation(gdf["income"], gdf["income_se"])
    cv_sch = m_moe.coefficient_of_variation(gdf["schooling"], gdf["schooling_se"])
    rel_inc = m_moe.reliability(cv_inc)
    rel_sch = m_moe.reliability(cv_sch)

    def counts(labels):
        return {lvl: int(np.sum(labels == lvl)) for lvl in ("high", "medium", "low")}

    c_inc, c_sch = counts(rel_inc), counts(rel_sch)
    results = f"""
Results  ({len(gdf)} counties)
{estimate_summary(gdf).round(3).to_string()}

  Median CV, income    : {np.nanmedian(cv_inc):.3f}   reliability {c_inc}
  Median CV, schooling : {np.nanmedian(cv_sch):.3f}   reliability {c_sch}

Panel A maps the income CV, panel B plots CV against the estimate for
both variables. Panel C is the reliability tally.
"""
    print(text + results)

    fig, axes = plt.subplots(1, 3, figsize=(15, 5))
    ax = axes[0]
    breaks = maps.quantile_breaks(cv_inc, 4)
    tmp = gdf.assign(cv_income=cv_inc)
    maps.plot_choropleth(ax, tmp, "cv_income", breaks, cmap="Oranges", fmt=".2f",
                         title="A) CV of Median Income")

    ax = axes[1]
    ax.scatter(gdf["income"], cv_inc, s=14, c=maps.CB, alpha=.6, label="Income")
    ax.scatter(gdf["schooling"] * SCALE, cv_sch, s=14, c=maps.CO, alpha=.6,
               label="Schooling (%)")
    ax.axhline(m_moe.CV_HIGH, color=maps.CG, ls="--", lw=1.5, label="CV = 12%")
    ax.axhline(m_moe.CV_LOW, color=maps.CR, ls="--", lw=1.5, label="CV = 40%")
    ax.set_xlabel("Estimate"); ax.set_ylabel("CV"); ax.set_title("B) CV vs Estimate")
    ax.legend(fontsize=8)

    ax = axes[2]
    lvls = ["high", "medium", "low"]
    pos = np.arange(len(lvls))
    ax.bar(pos - .2, [c_inc[lvl] for lvl in lvls], width=.4, color=maps.CB, label="Income")
    ax.bar(pos + .2, [c_sch[lvl] for lvl in lvls], width=.4, color=maps.CO, label="Schooling")
    ax.set_xticks(pos); ax.set_xticklabels(lvls)
    ax.set_ylabel("Counties"); ax.set_title("C) Reliability"); ax.legend(fontsize=8)

    fig.suptitle("Section 1: Margins of Error", fontsize=14, y=1.03); fig.tight_layout()
    return text + results, savefig(fig, outdir, "fig1_moe.png")


# =============================================================================
# 2. Choropleth classes
# =============================================================================
def section_choropleth(gdf, outdir, breaks):
    text = """\
Section 2: Choropleth Classes

A classed choropleth assigns each county to one of m classes using
breaks b_1 < ... < b_{m-1}, and colors it by class. Quantile breaks put
the same number of counties in every class, which makes maps look
balanced but says nothing about whether neighbouring classes are
statistically distinguishable.

The map colors every county as if its estimate were exact. When the
90% interval of an estimate straddles a break, a different survey
sample could have put the county in another class -- the color is a
coin flip the map does not disclose.
"""
    lo, hi = m_moe.confidence_interval(gdf["income"], gdf["income_se"], k=K)
    width = hi - lo
    results = f"""
Results
  Quantile breaks (income, $000): {', '.join(f'{b:.1f}' for b in breaks)}
  Median 90% interval width     : {np.median(width):.1f}
  Median class width            : {np.median(np.diff(breaks)):.1f}

When the typical interval is comparable to the typical class width, a
sizeable share of counties cannot be placed in a class with confidence.
Panel A is the income map; panel B shows every county's interval
against the class breaks.
"""
    print(text + results)

    fig, axes = plt.subplots(1, 2, figsize=(14, 5.5))
    maps.plot_choropleth(axes[0], gdf, "income", breaks,
                         title="A) Median Household Income ($000)")
    maps.plot_ci_bars(axes[1], gdf["income"], gdf["income_se"], breaks, k=K,
                      ylabel="Median income ($000)")
    axes[1].set_title("B) 90% Intervals vs Class Breaks")
    fig.suptitle("Section 2: Choropleth Classes", fontsize=14, y=1.03); fig.tight_layout()
    return text + results, savefig(fig, outdir, "fig2_choropleth.png")


# =============================================================================
# 3. Hatching
# =============================================================================
def section_hatching(gdf, outdir, breaks):
    text = """\
Section 3: Hatching Ambiguous Class Assignments

One way to disclose uncertainty without a second map is to hatch the
counties whose interval crosses a break. Compare each interval end
with the classes:
  within  the whole interval lies in the estimate's own class
  below   the lower end falls into a lower class
  above   the upper end reaches a higher class
  both    the interval spans classes on both sides

Each category gets its own hatch pattern on top of the fill color, so
the reader sees both the estimate and how firmly it sits in its class.
"""
    cats = m_moe.class_overlap(gdf["income"], gdf["income_se"], breaks, k=K)
    tally = {c: int(np.sum(cats == c)) for c in m_moe.HATCHES}
    results = f"""
Results
  Class overlap counts: {tally}
  Share of counties with an unsettled class: {1 - tally['within'] / len(cats):.1%}
"""
    print(text + results)

    fig, ax = plt.subplots(figsize=(9, 7))
    maps.plot_choropleth(ax, gdf, "income", breaks,
                         title="Median Income with Class-Overlap Hatching")
    maps.plot_overlap_hatching(ax, gdf, cats)
    fig.suptitle("Section 3: Hatching", fontsize=14, y=1.0); fig.tight_layout()
    return text + results, savefig(fig, outdir, "fig3_hatching.png")


# =============================================================================
# 4. Regression
# =============================================================================
def section_regression(gdf, outdir):
    text = """\
Section 4: Regression with Uncertain Estimates

Fit schooling (percent with a bachelor's degree) on median income:
  schooling*100 = a + b*income + e

OLS treats both columns as exact. The reported standard error of b
reflects scatter around the line, not the measurement error in each
county's inputs. Error in the regressor also attenuates b towards zero
(errors-in-variables), and counties with wide intervals get the same
weight as counties measured precisely.

A quick sensitivity check refits the line on every interval's lower
end and on every interval's upper end. These are not confidence
bounds -- both series are shifted together -- but they show that the
published numbers admit visibly different lines.
"""
    fits = m_reg.bound_regressions(gdf["income"], gdf["income_se"],
                                   gdf["schooling"], gdf["schooling_se"],
                                   k=K, scale=SCALE)
    p = fits["point"]
    results = f"""
Results
  Point estimates : slope = {p['slope']:.4f}  SE = {p['se'][1]:.4f}  R2 = {p['r2']:.3f}
  Lower bounds    : slope = {fits['lower']['slope']:.4f}
  Upper bounds    : slope = {fits['upper']['slope']:.4f}
"""
    print(text + results)

    x = gdf["income"].to_numpy(); y = gdf["schooling"].to_numpy() * SCALE
    x_lo, x_hi = m_moe.confidence_interval(x, gdf["income_se"], k=K)
    y_lo, y_hi = m_moe.confidence_interval(y, gdf["schooling_se"] * SCALE, k=K)
    xp = np.linspace(x_lo.min(), x_hi.max(), 100)

    fig, axes = plt.subplots(1, 2, figsize=(14, 5.5))
    ax = axes[0]
    ax.errorbar(x, y, xerr=[x - x_lo, x_hi - x], yerr=[y - y_lo, y_hi - y],
                fmt="o", ms=3, c=maps.CB, alpha=.35, lw=.7)
    ax.plot(xp, p["intercept"] + p["slope"] * xp, c=maps.CR, lw=2.5, label="OLS")
    ax.set_xlabel("Median income ($000)"); ax.set_ylabel("Bachelor's degree (%)")
    ax.set_title("A) Estimates with 90% Intervals"); ax.legend(fontsize=9)

    ax = axes[1]
    for key, col in (("point", maps.CR), ("lower", maps.CB), ("upper", maps.CO)):
        f = fits[key]
        ax.plot(xp, f["intercept"] + f["slope"] * xp, c=col, lw=2,
                label=f"{key}: b = {f['slope']:.3f}")
    ax.scatter(x, y, s=10, c=maps.CY, alpha=.5)
    ax.set_xlabel("Median income ($000)"); ax.set_ylabel("Bachelor's degree (%)")
    ax.set_title("B) Fits on Interval Ends"); ax.legend(fontsize=9)
    fig.suptitle("Section 4: Regression", fontsize=14, y=1.03); fig.tight_layout()
    return text + results, savefig(fig, outdir, "fig4_regression.png"), p


# =============================================================================
# 5. Bounded normal resampling
# =============================================================================
def section_sampler(gdf, outdir, seed):
    text = """\
Section 5: Bounded Normal Resampling

To simulate "what another survey sample might have reported", draw each
county's value from N(x, SE^2) but keep only draws inside
  [max(0, x - 1.645*SE), x + 1.645*SE]
Out-of-bound draws are rejected and redrawn, element by element, until
every county has an admissible value. Two consequences:
  - simulated values never leave the published 90% interval, and
  - values are never negative. When x - 1.645*SE < 0 the admissible
    interval is asymmetric and the truncated mean sits above x.

Each draw comes from an explicit random generator seeded by the caller,
so every figure in this primer is reproducible.
"""
    rel = m_moe.coefficient_of_variation(gdf["schooling"], gdf["schooling_se"])
    idx = int(np.nanargmax(rel))
    v = float(gdf["schooling"].iloc[idx]) * SCALE
    e = float(gdf["schooling_se"].iloc[idx]) * SCALE
    draws = m_samp.bounded_normal_matrix([v], [e], K, 5000, rng=seed)[:, 0]
    mom = m_samp.truncated_moments([v], [e], K)
    results = f"""
Results  (noisiest county: {gdf['name'].iloc[idx]})
  Estimate = {v:.2f}%  SE = {e:.2f}
  Bounds   = [{mom['lo'][0]:.2f}, {mom['hi'][0]:.2f}]
  Simulated mean = {draws.mean():.3f}   truncated-normal mean = {mom['mean'][0]:.3f}
  Simulated SD   = {draws.std():.3f}   truncated-normal SD   = {mom['std'][0]:.3f}
"""
    print(text + results)

    fig, ax = plt.subplots(figsize=(9, 5))
    maps.plot_truncated_draws(ax, draws, v, e, k=K)
    ax.set_xlabel("Bachelor's degree (%)"); ax.set_ylabel("Density")
    ax.set_title(f"5000 Bounded Draws -- {gdf['name'].iloc[idx]}")
    fig.suptitle("Section 5: Bounded Normal Resampling", fontsize=14, y=1.02)
    fig.tight_layout()
    return text + results, savefig(fig, outdir, "fig5_sampler.png")


# =============================================================================
# 6. Monte Carlo envelope
# =============================================================================
def section_envelope(gdf, outdir, point_fit, n_trials, seed):
    text = f"""\
Section 6: Monte Carlo Regression Envelope

Repeat the resampling of Section 5 for both series, refit the line,
and do it {n_trials} times:
  For t = 1, ..., N:
    1. x_t = bounded draw of every county's income
    2. y_t = bounded draw of every county's schooling share
    3. fit  y_t*100 = a_t + b_t * x_t  by OLS
The band swept out by the lines is the confidence envelope: the range
of relationships consistent with the published estimates and their
margins of error.

Each trial has its own random stream spawned from one root seed, so
the envelope is identical however the trials are scheduled. A trial
whose simulated income has no variance cannot be fit; it is recorded
as undefined and left out of the band.
"""
    x, x_se = gdf["income"].to_numpy(), gdf["income_se"].to_numpy()
    y, y_se = gdf["schooling"].to_numpy(), gdf["schooling_se"].to_numpy()
    res = m_env.simulate_envelope(x, x_se, y, y_se, k=K, n_trials=n_trials,
                                  seed=seed, scale=SCALE)
    xp = np.linspace(x.min(), x.max(), 100)
    band = m_env.envelope_band(res, xp)
    ss = m_env.slope_summary(res)
    results = f"""
Results
  Published-estimate slope : {point_fit['slope']:.4f}  (OLS SE {point_fit['se'][1]:.4f})
  Simulated slopes         : mean {ss['mean']:.4f}  SD {ss['std']:.4f}
  5-95% slope interval     : [{ss['lo']:.4f}, {ss['hi']:.4f}]
  Singular trials          : {res['n_singular']}

Compare the simulated slopes with the published-estimate slope: noise
in income tends to attenuate the fit. The spread of the simulated
slopes is uncertainty the ordinary OLS standard error leaves out.
"""
    print(text + results)

    fig, axes = plt.subplots(1, 2, figsize=(14, 5.5))
    maps.plot_envelope(axes[0], x, y * SCALE, res, xp, band=band, point_fit=point_fit,
                       xlabel="Median income ($000)", ylabel="Bachelor's degree (%)")
    axes[0].set_title(f"A) {n_trials} Simulated Lines")

    ax = axes[1]
    slopes = res["slopes"][~res["singular"]]
    ax.hist(slopes, bins=50, density=True, alpha=.6, color=maps.CB, edgecolor="white")
    ax.axvline(point_fit["slope"], color=maps.CR, lw=2, label="Published-estimate OLS")
    ax.axvline(ss["lo"], color=maps.CO, ls=":", lw=2)
    ax.axvline(ss["hi"], color=maps.CO, ls=":", lw=2,
               label=f"5-95% [{ss['lo']:.3f}, {ss['hi']:.3f}]")
    ax.set_xlabel("Slope"); ax.set_ylabel("Density"); ax.set_title("B) Simulated Slopes")
    ax.legend(fontsize=8)
    fig.suptitle("Section 6: Monte Carlo Envelope", fontsize=14, y=1.03); fig.tight_layout()
    return text + results, savefig(fig, outdir, "fig6_envelope.png")


SUMMARY = """
SUMMARY
=======

Published survey estimates are intervals, not points.

Question                          | What to do
----------------------------------|-----------------------------------------------
How reliable is one estimate?     | SE = MoE / 1.645; CV = SE / x; flag CV > 40%
Can a map class be trusted?       | Compare the 90% interval with the class breaks
How to show it on the map?        | Hatch counties whose interval crosses a break
How sensitive is a regression?    | Refit on bounded resamples; plot the envelope

Regardless of method, always:
  - Carry the MoE alongside every estimate you use
  - Choose class breaks with interval widths in mind
  - Report the spread of refitted slopes next to the OLS standard error
  - Fix and publish the random seed of any simulation
"""


def main():
    parser = argparse.ArgumentParser(
        description="Margins of error in maps and regressions -- visual primer"
    )
    parser.add_argument("--shapefile", default=None,
                        help="County shapefile: path, .zip archive or URL")
    parser.add_argument("--source", choices=["auto", "shapefile", "simulate"],
                        default="auto",
                        help="'shapefile' requires --shapefile, 'simulate' uses "
                             "synthetic counties, 'auto' tries the shapefile "
                             "then falls back (default: auto)")
    parser.add_argument("--trials", type=int, default=1000,
                        help="Monte Carlo trials for the envelope (default: 1000)")
    parser.add_argument("--seed", type=int, default=42, help="Random seed (default: 42)")
    parser.add_argument("--classes", type=int, default=5,
                        help="Number of choropleth classes (default: 5)")
    parser.add_argument("--outdir", default=OUTDIR, help="Where PNGs and the PDF go")
    parser.add_argument("--no-pdf", action="store_true", help="Skip PDF assembly")
    args = parser.parse_args()

    os.makedirs(args.outdir, exist_ok=True)
    maps.apply_style()

    print("=" * 60)
    print("Margins of Error in Maps and Regressions")
    print("=" * 60)

    gdf = load_data(args.shapefile, mode=args.source, seed=args.seed)
    print(f"[Data] {len(gdf)} counties from {gdf.attrs.get('source', 'unknown')}")
    breaks = maps.quantile_breaks(gdf["income"], args.classes)

    sections = [
        section_moe(gdf, args.outdir),
        section_choropleth(gdf, args.outdir, breaks),
        section_hatching(gdf, args.outdir, breaks),
    ]
    reg_text, reg_fig, point_fit = section_regression(gdf, args.outdir)
    sections.append((reg_text, reg_fig))
    sections.append(section_sampler(gdf, args.outdir, args.seed))
    sections.append(section_envelope(gdf, args.outdir, point_fit, args.trials, args.seed))
    print(SUMMARY)

    if args.no_pdf:
        print("Done!")
        return

    print("[PDF] Combining text and figures...")
    pdf_path = build_pdf(
        os.path.join(args.outdir, "margin_of_error_primer.pdf"),
        "MARGINS OF ERROR IN MAPS AND REGRESSIONS",
        "A Visual Primer",
        [
            "Survey estimates such as ACS median income come with a margin of",
            "error. Each section explains one consequence for mapping or",
            "regression, then shows it on county data.",
            "",
            "Sections: MoE and SE, Choropleth classes, Hatching, Regression,",
            "Bounded normal resampling, Monte Carlo regression envelope.",
        ],
        sections,
        SUMMARY,
    )
    print(f"[PDF] Done! {len(sections)} PNGs + {pdf_path}")


if __name__ == "__main__":
    main()
