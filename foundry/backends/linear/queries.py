"""GraphQL documents used by the Linear backend."""

TEAMS = """
query FoundryTeams {
  teams(first: 100) { nodes { id key name } }
}
"""

TEAM_STATES = """
query FoundryTeamStates($teamId: String!) {
  team(id: $teamId) {
    id
    states { nodes { id name type position } }
  }
}
"""

PROJECTS = """
query FoundryProjects($after: String) {
  projects(first: 50, after: $after) {
    nodes {
      id
      name
      createdAt
      documents(first: 100) { nodes { id title content } }
    }
    pageInfo { hasNextPage endCursor }
  }
}
"""

PROJECT_ISSUES = """
query FoundryProjectIssues($projectId: ID!, $after: String) {
  issues(first: 100, after: $after, filter: { project: { id: { eq: $projectId } } }) {
    nodes {
      id
      identifier
      title
      description
      createdAt
      parent { id }
      state { id type }
      labels { nodes { id name } }
    }
    pageInfo { hasNextPage endCursor }
  }
}
"""

LABELS = """
query FoundryLabels($name: String!) {
  issueLabels(filter: { name: { eq: $name } }) { nodes { id name } }
}
"""

LABEL_CREATE = """
mutation FoundryLabelCreate($input: IssueLabelCreateInput!) {
  issueLabelCreate(input: $input) { success issueLabel { id name } }
}
"""

PROJECT_CREATE = """
mutation FoundryProjectCreate($input: ProjectCreateInput!) {
  projectCreate(input: $input) { success project { id name createdAt } }
}
"""

PROJECT_UPDATE = """
mutation FoundryProjectUpdate($id: String!, $input: ProjectUpdateInput!) {
  projectUpdate(id: $id, input: $input) { success }
}
"""

PROJECT_DELETE = """
mutation FoundryProjectDelete($id: String!) {
  projectDelete(id: $id) { success }
}
"""

DOCUMENT_CREATE = """
mutation FoundryDocumentCreate($input: DocumentCreateInput!) {
  documentCreate(input: $input) { success document { id title } }
}
"""

DOCUMENT_UPDATE = """
mutation FoundryDocumentUpdate($id: String!, $input: DocumentUpdateInput!) {
  documentUpdate(id: $id, input: $input) { success }
}
"""

DOCUMENT_DELETE = """
mutation FoundryDocumentDelete($id: String!) {
  documentDelete(id: $id) { success }
}
"""

ISSUE_CREATE = """
mutation FoundryIssueCreate($input: IssueCreateInput!) {
  issueCreate(input: $input) { success issue { id identifier } }
}
"""

ISSUE_UPDATE = """
mutation FoundryIssueUpdate($id: String!, $input: IssueUpdateInput!) {
  issueUpdate(id: $id, input: $input) { success }
}
"""

ISSUE_DELETE = """
mutation FoundryIssueDelete($id: String!) {
  issueDelete(id: $id) { success }
}
"""
