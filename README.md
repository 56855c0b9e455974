# schemarecommender

Property recommendations for knowledge-graph entities, based on a SchemaTree.
A SchemaTree is a frequent-pattern tree built over the property sets of many
entities. Given the properties (and types) that an entity already has, the
tree ranks the other properties by how likely the entity is to have them too.

The package has no runtime dependencies beyond the standard library.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Building a model

The input is one of these:

- A plain text file with one transaction per line. A transaction is a set of
  property names separated by whitespace. Blank lines are skipped. Type
  tokens start with `t#`.
- A Wikidata JSON dump, either plain, gzip (`.gz`) or bzip2 (`.bz2`), with
  one entity per line. The claimed properties of each entity become its
  properties. Each entity-id value of `P31` becomes a `t#<id>` type.

```
schemarecommender build-tree from-tsv data/transactions.tsv
schemarecommender build-tree from-dump data/latest-all.json.bz2
```

The tool reads the input twice. The first pass counts how often each
property occurs. The second pass inserts the transactions into the tree. The
model is written next to the input as `<dataset>.schemaTree.typed.pb`.
`--format` (placed before `from-tsv` / `from-dump`) takes only `pb`, which is
its default. The file is written in the package's own compact binary format,
and only `SchemaTree.load` reads it.

## Serving recommendations

```
schemarecommender serve data/transactions.tsv.schemaTree.typed.pb --port 8080
```

Options:

- `-p`, `--port`: the port to listen on, on `0.0.0.0`. The default is 8080.
- `-w`, `--workflow PATH`: a JSON workflow configuration. The default is
  `./configuration/Workflow.json`. Pass an empty value (`--workflow ""`) to
  use the built-in "best" workflow instead.
- `--hard_limit N`: the largest number of results one response holds. `-1`
  means no limit. The default is 500.
- `-c`, `--cert FILE` and `-k`, `--key FILE`: serve over TLS. Give both or
  neither.

Send a JSON body to `/recommender`. Any HTTP method works:

```json
{"properties": ["P31", "P17"], "types": ["Q515"]}
```

The server ignores names that the model does not know. The response lists
the recommended properties with their probabilities, most likely first.
Types are left out of the response.

```json
{"recommendations": [{"property": "P625", "probability": 0.93}]}
```

A body that is not valid JSON gets status 400. Any other path gets 404.

## Global options

These options go before or after the command:

- `-t`, `--time`: log how long the command took.
- `--cpuprofile FILE`: write call counts and cumulative times per function.
- `--memprofile FILE`: write a `tracemalloc` snapshot at the end.
- `--trace FILE`: write a line for every function call.

## Workflow configuration

A workflow is a list of layers. Each layer pairs a condition with a backoff
procedure. The first layer whose condition holds produces the
recommendations. Keys match case-insensitively.

```json
{
  "Layers": [
    {"Condition": "tooFewRecommendations", "Threshold": 1,
     "Backoff": "deleteLowFrequency", "Stepsize": "stepsizeLinear",
     "ParallelExecutions": 4},
    {"Condition": "always", "Backoff": "standard"}
  ]
}
```

Conditions:

- `always`
- `aboveThreshold`, which uses `Threshold`
- `tooFewRecommendations`, which uses `Threshold`
- `tooUnlikelyRecommendationsCondition`, which uses `ThresholdFloat`

Backoffs:

- `standard`
- `deleteLowFrequency`, with `Stepsize` set to `stepsizeLinear` or
  `stepsizeProportional`, and a non-zero `ParallelExecutions`
- `splitProperty`, with `Splitter` set to `everySecondItem` or
  `twoSupportRanges`, and `Merger` set to `max` or `avg`

An unknown name raises `ConfigurationError`. So do a missing setting, or a
configuration with no layers.

## Library use

```python
from schemarecommender.transactions import simple_file_transaction_source
from schemarecommender.tree import create
from schemarecommender.recommendation import recommend

tree = create(simple_file_transaction_source("data/transactions.tsv"))
for candidate in recommend(tree, ["a", "b"], []):
    print(candidate.property.iri, candidate.probability)
```

Other entry points:

- `SchemaTree.save` / `SchemaTree.load` store and read models.
- `schemarecommender.strategy.make_preset_workflow` builds the presets
  `best`, `direct`, `deletelowfrequency`, `splitproperty` and
  `toofewrecommendations`.
- `schemarecommender.server.make_recommender` gives the request handler
  without a socket.