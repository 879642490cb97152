"""honeytrace Quick Start: trace some work and flush it to the collector.

Set the collector settings first, in the environment or a .env file::

    OTLP_TONIC_ENDPOINT=https://api.honeycomb.io:443
    OTLP_TONIC_X_HONEYCOMB_TEAM=<your API key>
"""

import honeytrace

# 1. Build the pipeline (fails fast on missing configuration)
honeytrace.load_env_file()
handle = honeytrace.init(layers=[honeytrace.ConsoleLayer()])


# 2. Trace some work
@honeytrace.trace(name="render-greeting")
def render(name: str) -> str:
    return f"Hello {name}!"


with handle.span("batch-job", kind=honeytrace.SpanKind.INTERNAL) as s:
    s.set_attribute("job.size", 3)
    for who in ("ada", "grace", "linus"):
        with honeytrace.span("greet") as child:
            child.set_attribute("user.name", who)
            render(who)

# 3. Shutdown (flushes remaining spans)
if honeytrace.shutdown(handle):
    print("All spans exported.")
else:
    print("Collector did not drain in time; some spans were dropped.")
