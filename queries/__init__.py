from queries.place_query import Pipeline, PipelineError, PlaceQueryBuilder
