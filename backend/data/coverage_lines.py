# Coverage lines a requirement template can mark as required, in the order
# they are reported. Each maps the template minimum to the snapshot limit it
# is compared against.
COVERAGE_LINE_RULES = {
    "GL_OCCURRENCE": {
        "name": "General Liability Each Occurrence",
        "requirement_field": "gl_occurrence_min",
        "snapshot_field": "gl_each_occurrence",
    },
    "GL_AGGREGATE": {
        "name": "General Liability Aggregate",
        "requirement_field": "gl_aggregate_min",
        "snapshot_field": "gl_aggregate",
    },
    "AUTO_COMBINED": {
        "name": "Auto Liability Combined Single Limit",
        "requirement_field": "auto_combined_min",
        "snapshot_field": "auto_combined_single",
    },
    "UMBRELLA": {
        "name": "Umbrella/Excess Liability",
        "requirement_field": "umbrella_min",
        "snapshot_field": "umbrella_limit",
    },
    "WORKERS_COMP": {
        "name": "Workers Compensation Each Accident",
        "requirement_field": "workers_comp_min",
        "snapshot_field": "wc_each_accident",
        # Setting this flag makes the line required even without a minimum
        "required_flag": "workers_comp_required",
    },
}

# Endorsement flags: template field that requires it -> snapshot field that satisfies it
POLICY_FLAG_RULES = {
    "ADDITIONAL_INSURED": {
        "name": "Additional Insured",
        "requirement_field": "additional_insured_required",
        "snapshot_field": "additional_insured",
    },
    "WAIVER_OF_SUBROGATION": {
        "name": "Waiver of Subrogation",
        "requirement_field": "waiver_of_subrogation_required",
        "snapshot_field": "waiver_of_subrogation",
    },
    "PRIMARY_NON_CONTRIBUTORY": {
        "name": "Primary & Non-Contributory",
        "requirement_field": "primary_non_contributory_required",
        "snapshot_field": "primary_non_contributory",
    },
}
