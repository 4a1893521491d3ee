"""
Simple Mediation Example
========================

Power for the indirect effect of an intervention on an outcome through a
mediator, at a planned sample size.
"""

import medpower

# Example: a training programme (x) improves self-efficacy (m), which in
# turn improves job performance (y)

print("=" * 60)
print("SIMPLE MEDIATION EXAMPLE")
print("=" * 60)

# 1. Define the path model; ind is the indirect effect
model = medpower.MedPower("""
    m ~ a*x
    y ~ cp*x + b*m
    ind := a*b
""")

# 2. Expected standardised paths
model.set_effects("a=0.3, b=0.3, cp=0.1")

# 3. The programme is a randomised binary assignment
model.set_variable_type("x=binary")

# 4. Standardise residuals so effects read as standardised coefficients
model.set_residual_variances("standardized")

print("\n1. POWER AT N=150:")
model.find_power(sample_size=150, target_test="a, b, ind")

print("\n2. DETAILED OUTPUT:")
model.find_power(sample_size=150, target_test="ind", summary="long")
