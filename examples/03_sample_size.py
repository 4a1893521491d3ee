"""
Sample Size Example
===================

Find the sample size at which the index of moderated mediation reaches
80% power, with power curves.
"""

import medpower

print("=" * 60)
print("SAMPLE SIZE EXAMPLE")
print("=" * 60)

model = medpower.MedPower("""
    m ~ a1*x + a2*w + a3*x:w
    y ~ cp*x + b1*m
    imm := a3*b1
""")
model.set_effects("a1=0.3, a2=0.1, a3=0.2, cp=0.1, b1=0.4")
model.set_simulations(500)

# Sample sizes are independent, so the sweep can use several cores
model.set_parallel(True)

model.find_sample_size(
    target_test="imm, b1",
    from_size=100,
    to_size=600,
    by=50,
    summary="long",  # table plus power curves
)
