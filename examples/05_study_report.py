"""
Study Report Example
====================

Full planning workflow: sweep sample sizes, pick the smallest that gives
every target 80% power, confirm it with an independent run and write a
Markdown report with power curves.
"""

import medpower
from medpower.report import write_report

model = medpower.MedPower("""
    m ~ a1*x + a2*w + a3*x:w
    y ~ cp*x + b1*m
    ind_low  := (a1 - a3)*b1
    ind_high := (a1 + a3)*b1
    imm      := a3*b1
""")
model.set_effects("a1=0.3, a2=0.1, a3=0.2, cp=0.1, b1=0.4")
model.set_variable_type("w=(binary,0.4)")
model.set_simulations(500)

study = medpower.run_study(
    model,
    target_test="ind_high, imm",
    from_size=100,
    to_size=700,
    by=50,
    print_results=True,
    progress_callback=medpower.PrintReporter(),
)

path = write_report(study, "moderated_mediation_power.md", model=model)
print(f"\nReport written to {path}")
