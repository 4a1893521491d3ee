"""
Moderated Mediation Example
===========================

First-stage moderated mediation: the effect of x on the mediator depends
on a moderator w. Targets are the conditional indirect effects at w = -1 SD
and +1 SD and the index of moderated mediation.
"""

import medpower

print("=" * 60)
print("MODERATED MEDIATION EXAMPLE")
print("=" * 60)

model = medpower.MedPower("""
    m ~ a1*x + a2*w + a3*x:w
    y ~ cp*x + b1*m
    ind_low  := (a1 - a3)*b1
    ind_high := (a1 + a3)*b1
    imm      := a3*b1
""")

model.set_effects("a1=0.3, a2=0.1, a3=0.2, cp=0.1, b1=0.4")
model.set_correlations("corr(x, w)=0.2")

print("\nPopulation values:")
for name, value in model.population_effects().items():
    print(f"  {name}: {value:.3f}")

print("\n1. POWER FOR DEFINED EFFECTS AT N=250:")
model.find_power(sample_size=250, target_test="defined")

print("\n2. DELTA METHOD FOR COMPARISON:")
model.set_ci_method("delta")
model.find_power(sample_size=250, target_test="defined")
