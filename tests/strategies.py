"""Hypothesis strategies for stacked registry operations.

Generates random sequences of create / re-base operations over a small
alphabet of branch names, so that cycles and missing bases come up often.
"""

from hypothesis import strategies as st

branch_names = st.sampled_from(["a", "b", "c", "d", "e", "f"])

base_names = st.one_of(st.just("main"), branch_names)

create_op = st.tuples(st.just("create"), branch_names, base_names)

rebase_op = st.tuples(st.just("update"), branch_names, base_names)

operation = st.one_of(create_op, rebase_op)

operation_sequences = st.lists(operation, min_size=1, max_size=40)

status_values = st.sampled_from(["active", "submitted", "merged"])

# Envelope field values: mostly strings, sometimes the wrong primitive type.
field_values = st.one_of(
    st.text(min_size=1, max_size=20),
    st.integers(),
    st.none(),
    st.booleans(),
    st.lists(st.text(max_size=5), max_size=2),
)
